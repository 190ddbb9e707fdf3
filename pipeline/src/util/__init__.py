"""Utility helpers for the importers."""

from .ids import alias_name, clean_identifier, generate_index_name

__all__ = ["alias_name", "clean_identifier", "generate_index_name"]
