"""CLI package for Mortimer."""
