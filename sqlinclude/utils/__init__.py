"""Utility functions and classes for sqlinclude."""
