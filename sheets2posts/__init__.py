"""Sync rows of published Google Sheets into posts of a content store."""

__version__ = "0.4.0"
