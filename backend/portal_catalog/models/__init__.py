"""
SQLModel/SQLAlchemy ORM models.

Models are imported lazily to avoid circular import issues.
Import specific models directly:
    from portal_catalog.models.dataset import Dataset

Or through the package:
    from portal_catalog.models import Dataset, SyncLog
"""

# Re-export SQLModel for convenience
from sqlmodel import SQLModel

__all__ = [
    "SQLModel",
    # Base
    "BaseTableModel",
    # Models
    "Dataset",
    "SyncLog",
]


def __getattr__(name: str):
    """
    Lazy import of models to avoid circular import issues.

    Called when an attribute is accessed that doesn't exist in the module
    namespace. Defers model imports until they're actually needed.
    """
    if name == "BaseTableModel":
        from portal_catalog.models.base import BaseTableModel
        return BaseTableModel
    elif name == "Dataset":
        from portal_catalog.models.dataset import Dataset
        return Dataset
    elif name == "SyncLog":
        from portal_catalog.models.sync_log import SyncLog
        return SyncLog

    raise AttributeError(f"module 'portal_catalog.models' has no attribute '{name}'")
