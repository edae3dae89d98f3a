"""Cargo manifest build & scan service."""

__version__ = "1.0.0"
