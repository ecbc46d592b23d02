"""Format parsers: one module per raw export format."""
