"""Storage package for Mortimer."""
