"""Idea Canvas: diagram graph engine for hierarchical idea maps."""

__version__ = "1.0.0"
