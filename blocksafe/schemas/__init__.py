"""Pydantic models for format configuration and API error bodies."""
