"""Filtered, capped, audited quote export."""

from quote_engine.export.exporter import ExportFilters, ExportResult, QuoteExporter

__all__ = [
    "ExportFilters",
    "ExportResult",
    "QuoteExporter",
]
