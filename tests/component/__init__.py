"""
Component tests for the shop API

These go through the FastAPI routes with real stores backed by an
in-memory database (no mocking).
"""
