"""Campusrent: campus rental search and saved-search email notifications."""

__version__ = "0.1.0"
