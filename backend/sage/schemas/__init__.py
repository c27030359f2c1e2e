"""Pydantic Schemas — request/response validation at the HTTP boundary."""
