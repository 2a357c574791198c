"""HTTP surface: batch trigger and catalog search."""

from campusrent.api.app import TRIGGER_PATH, create_app

__all__ = ["TRIGGER_PATH", "create_app"]
