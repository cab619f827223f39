"""
App module for the trade journal embedding toolkit.

Holds configuration shared by the database, embedding and migration layers.
"""

__all__ = ["config"]
