"""Record sources for pending accounts."""

from .base import BaseExtractor, ExtractionResult
from .database_extractor import DatabaseExtractor
from .csv_extractor import CSVExtractor

__all__ = [
    "BaseExtractor",
    "ExtractionResult",
    "DatabaseExtractor",
    "CSVExtractor",
]
