"""HTTP surface: the metrics exposition endpoint."""
