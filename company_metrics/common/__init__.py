"""
Shared building blocks: configuration, logging, errors, parsing and pacing.
"""
