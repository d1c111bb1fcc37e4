"""Per-document pixel editing core: filters, change detection and export."""

__version__ = "0.1.0"
