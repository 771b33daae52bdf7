"""Catalog records and the read-only catalog reader."""
