"""ratify - checksum catalogs for directory trees."""

__version__ = "0.4.0"
