"""
Component tests for the storefront API

These drive the FastAPI routes, services and repositories together against
an in-memory Redis, without mocking internal components.
"""
