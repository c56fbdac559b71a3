"""
Unit tests for the cart engine, cart store and catalog services.
"""
