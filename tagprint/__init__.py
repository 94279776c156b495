"""Item tags, order barcodes and scan lookups for laundry orders."""

__version__ = "1.0.0"
