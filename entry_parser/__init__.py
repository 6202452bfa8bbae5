"""Free-text entry parsing."""
from .parser import parse_entry_text, unparse_entry_text

__all__ = ["parse_entry_text", "unparse_entry_text"]
