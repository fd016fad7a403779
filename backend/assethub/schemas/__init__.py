"""
AssetHub Backend — Pydantic Schemas
====================================

Schemas are separate from SQLAlchemy models: they are the API contract, the
cache snapshot format, and the identity passed into every core operation.
"""
