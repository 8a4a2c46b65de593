"""
Printing support for reader-printer.
"""

from .dispatcher import PrintDispatcher, build_option_args, parse_lpstat

__all__ = ['PrintDispatcher', 'build_option_args', 'parse_lpstat']
