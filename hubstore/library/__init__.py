"""Library store — the installed packages and their identities.

The store provides:
- Indexing: read every library.json under the libraries directory
- Lookup: exact minor line, latest version, folder paths, semantics
- Removal of installed minor lines
"""
