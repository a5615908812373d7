"""
pgslice - Foreign-key aware extraction of connected rows

Starting from one seed row, finds every row transitively connected to it
through foreign keys and emits them as INSERT statements in dependency order.
"""

from pgslice.backends import DirectBackend, StagingBackend
from pgslice.cancellation import CancelToken
from pgslice.config import Config
from pgslice.emitter import InsertStatement
from pgslice.extractor import Extraction, Extractor
from pgslice.introspection import SchemaIntrospector
from pgslice.models import ColumnInfo, ExtractedRow, ExtractionSession, SchemaGraph, TableInfo

__version__ = "0.1.0"

__all__ = [
    "Extractor",
    "Extraction",
    "InsertStatement",
    "SchemaGraph",
    "TableInfo",
    "ColumnInfo",
    "ExtractedRow",
    "ExtractionSession",
    "SchemaIntrospector",
    "DirectBackend",
    "StagingBackend",
    "CancelToken",
    "Config",
]
