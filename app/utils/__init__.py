"""Shared utility helpers used by the enrichment services."""
