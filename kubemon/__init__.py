"""Building blocks for exporting Kubernetes events as log entries and node metrics as time series."""

__version__ = "0.1.0"