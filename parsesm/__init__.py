"""
parsesm

Recovers original sources from a deployed web application by discovering
its same-origin JavaScript bundles, fetching their source maps, and writing
the embedded sources into ./out/<host>/ in a tree mirroring the original
project layout.
"""

from .errors import BadPathError, ParsesmError, UnsupportedSourceMap
from .extractor import ExtractionSummary, SourceMapExtractor

__version__ = "0.1.0"

__all__ = [
    "BadPathError",
    "ExtractionSummary",
    "ParsesmError",
    "SourceMapExtractor",
    "UnsupportedSourceMap",
]
