"""
Domain package - Core business logic with no external dependencies.

This package contains pure Python models and rules for VAT decomposition
and Dutch statutory tax deadlines.
"""
