"""Flattening and storage services."""
