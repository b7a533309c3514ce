"""Distribution — getting libraries into and out of the store as archives.

- Importer: validated extraction of uploads and the replacement policy
- Exporter: self-contained archives of a library and its dependencies
"""
