"""Test fixtures for dbx-metadata tests."""

from .fake_catalog import FakeCatalog, access_denied, column_row, permission_denied

__all__ = ["FakeCatalog", "access_denied", "column_row", "permission_denied"]
