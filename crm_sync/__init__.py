"""CRM Sync — export/synchronization engine for commerce entities."""

__version__ = "1.0.0"
