"""Reporting: exports and charts."""
