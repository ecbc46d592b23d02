"""Source adapters, format parsers and archive helpers."""
