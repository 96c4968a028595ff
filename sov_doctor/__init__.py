"""Statement-of-values workbook interpretation: analyze, classify, map, validate."""

__version__ = "0.1.0"
