"""Exception hierarchy shared by the store, resolver, importer and exporter."""


class HubStoreError(Exception):
    """Base class for all hubstore errors."""


class MalformedIdentityError(HubStoreError, ValueError):
    """An uber name or folder name could not be parsed into an identity."""


class UnreadableLibraryError(HubStoreError):
    """A library folder has a missing, corrupt or mismatching library.json."""


class LibraryNotFoundError(HubStoreError, LookupError):
    """The requested library is not installed."""


class UnsafeArchiveError(HubStoreError):
    """An archive tried to write outside its scratch directory or contains links."""


class UnsafeSourceError(HubStoreError):
    """A file path handed to the importer failed validation."""


class UpdateInProgressError(HubStoreError):
    """Another process holds the update lock."""
