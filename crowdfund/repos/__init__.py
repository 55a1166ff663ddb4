"""
Repository gate layer.

One gate per entity type. Every gate resolves the caller, authorizes the
operation and validates the candidate before anything reaches storage.
"""
