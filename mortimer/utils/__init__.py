"""Utility modules for Mortimer."""
