"""Reporting package for Mortimer."""
