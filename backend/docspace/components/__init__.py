"""Core Business Components.

This package contains independent business modules:
- workspace: Document workspace state (catalog, cache, trash, selection)
"""
