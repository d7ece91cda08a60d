"""Saviour: emergency case coordination over a shared key-value grid."""

__version__ = "0.1.0"
