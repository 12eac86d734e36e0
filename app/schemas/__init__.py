"""Pydantic schemas for request validation and pipeline records.

Import from submodules:  from app.schemas.enrichment import Suggestion
"""
