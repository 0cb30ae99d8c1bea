"""Integrations with external content backends."""

from .airtable import AirtableClient, build_filter_formula

__all__ = ["AirtableClient", "build_filter_formula"]
