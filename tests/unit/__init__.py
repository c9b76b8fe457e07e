"""
Unit tests for the stores and helpers, called directly without HTTP.
"""
