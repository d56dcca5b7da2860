"""
Test suite for the snapfit photo API.
"""
