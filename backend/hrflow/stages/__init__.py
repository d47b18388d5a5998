"""Stage operations: one module per status-bearing record type."""
