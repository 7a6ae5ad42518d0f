"""Table, JSON and text I/O. Writers are atomic (temp file then rename)."""

from .readers import read_json, read_table
from .writers import atomic_write_json, atomic_write_text, write_table

__all__ = ["read_json", "read_table", "atomic_write_json", "atomic_write_text", "write_table"]
