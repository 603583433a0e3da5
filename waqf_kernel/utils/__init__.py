"""Utility functions for the waqf kernel."""
