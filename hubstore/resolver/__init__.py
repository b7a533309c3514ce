"""Dependency resolution over the installed library snapshot.

Covers direct (mandatory and optional) dependencies, the transitive closure,
multi-version conflict detection, and missing or outdated dependency pins.
"""
