"""
Celery tasks package.

Exports all tasks for convenient imports.
Version: 1.0.0
"""
from crm_sync.celery_app.tasks.sync import sync_item
from crm_sync.celery_app.tasks.export import export_page

__all__ = [
    "sync_item",
    "export_page",
]
