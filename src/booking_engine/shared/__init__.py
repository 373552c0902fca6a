"""
Shared infrastructure: configuration-aware logging, database sessions,
timezone primitives and the domain exception hierarchy.
"""
