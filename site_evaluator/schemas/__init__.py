"""Pydantic schemas and shared enumerations."""
