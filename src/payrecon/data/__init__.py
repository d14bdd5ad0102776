"""Bundled bracket tables."""
