"""Shared test data and doubles."""
