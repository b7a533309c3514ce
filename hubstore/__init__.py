"""hubstore — versioned library store for H5P-style content type registries."""

__version__ = "0.1.0"
