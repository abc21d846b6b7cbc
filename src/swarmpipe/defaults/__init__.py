"""Bundled default pipeline configuration."""
