"""
Version information for the company metrics resolver.

Single source of truth for the package and CLI version.
"""

__version__ = "0.1.0"
__version_info__ = (0, 1, 0)
