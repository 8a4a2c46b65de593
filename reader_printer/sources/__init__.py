"""
Remote document sources for reader-printer.
"""

from .reader_api import ReaderAPI

__all__ = ['ReaderAPI']
