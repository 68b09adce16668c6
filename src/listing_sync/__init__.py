"""Live listing synchronization and engagement-metrics aggregation."""

__version__ = "0.1.0"
