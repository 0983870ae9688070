"""
Processing module for the PICA+ extraction system.

This module provides the handler-driven parser, the statistics-keeping writer
and the field selection handler.
"""

from .record_parser import PicaParser
from .record_writer import PicaWriter
from .selection import FieldSelector

__all__ = [
    'PicaParser',
    'PicaWriter',
    'FieldSelector'
]
