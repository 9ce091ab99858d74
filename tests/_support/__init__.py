"""
Test support utilities for pgkv tests.

Helpers that are not pytest fixtures but are shared by several test files.
"""
