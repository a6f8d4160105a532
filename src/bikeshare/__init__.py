# ========================
# src/bikeshare/__init__.py
# ========================

"""
Bike-share Usage Pipeline Package

Core components comparing member and casual riders across monthly trip exports:
- ingestion: Chunked CSV reading and multi-file concatenation
- cleaning: Typed trip records, derived fields and duration filtering
- transformation: Grouped counts, mean ride lengths and ride shares
- storage: Combined dataset and summary table output
- orchestrator: Pipeline coordination
"""

from .errors import PipelineError, SchemaMismatch, MissingColumn, ParseError
from .records import TripRecord
from .ingestion import CSVReader, TripDataLoader, discover_monthly_files
from .cleaning import TripCleaner
from .transformation import TripAggregator
from .storage import TripDataSaver, CombinedDataWriter
from .orchestrator import TripPipeline

__all__ = [
    'PipelineError',
    'SchemaMismatch',
    'MissingColumn',
    'ParseError',
    'TripRecord',
    'CSVReader',
    'TripDataLoader',
    'discover_monthly_files',
    'TripCleaner',
    'TripAggregator',
    'TripDataSaver',
    'CombinedDataWriter',
    'TripPipeline'
]

__version__ = "1.0.0"
