"""
Blog post content-management backend.

This package provides a FastAPI application over a storage port with two
interchangeable backends: an in-memory store for development and tests and
a relational store (SQLAlchemy asyncio, MySQL in production).
"""
