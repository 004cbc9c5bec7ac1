"""Finds installed applications and their leftovers, and moves them to the Trash."""

__version__ = "0.1.0"
