"""Snapshot sanitizer, projections, layout and builder."""
