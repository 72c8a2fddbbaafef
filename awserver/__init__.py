"""Local HTTP server that keeps activity-tracking buckets, events and settings in memory."""

__version__ = "0.13.1"