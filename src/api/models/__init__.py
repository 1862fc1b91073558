"""
Pydantic models for API request/response schemas.

Field names follow the frontend's camelCase; internal pipeline types stay
separate so the HTTP contract can change without touching the pipeline.
"""
