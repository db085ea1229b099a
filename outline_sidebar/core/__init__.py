"""Display-agnostic sidebar core: buffers, outline parsing, queries, grouping
and services.
"""
