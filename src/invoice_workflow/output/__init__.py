"""Output module: CSV export of extracted data."""

from .csv_exporter import CSVExporter, ExportedCSV

__all__ = ["CSVExporter", "ExportedCSV"]
