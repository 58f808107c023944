"""Append-only JSON-lines journal."""

from journal.writer import JournalWriter

__all__ = ["JournalWriter"]
