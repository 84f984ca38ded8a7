"""Console and JSON rendering of inspection reports."""
