# btvault/adapters/storage/__init__.py
"""Export surface for the result-archive storage adapter."""

from .archive import read_entries, read_entry, unique_file_name, write_archive

__all__ = ["read_entries", "read_entry", "unique_file_name", "write_archive"]
