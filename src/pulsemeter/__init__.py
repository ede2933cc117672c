"""pulsemeter - activity pulse ingestion and time-usage analytics."""

__version__ = "0.1.0"
