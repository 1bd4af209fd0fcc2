"""
Test suite for the menu import backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_category_reconciler.py -v
"""
