"""Derived metrics and display formatting."""
