"""Synthetic landmark fixtures."""
