"""
Background Removal API - demonstration service deployed by eksops.
"""

__version__ = "1.0.0"
