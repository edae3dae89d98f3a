"""Manifest build & scan core."""
