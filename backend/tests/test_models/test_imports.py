"""Tests for model imports and table registration."""

import pytest


class TestModelImports:
    """Test that all models can be imported correctly."""

    def test_import_base_model(self):
        from portal_catalog.models import BaseTableModel

        assert BaseTableModel is not None

    def test_import_dataset(self):
        """Test Dataset model can be imported."""
        from portal_catalog.models import Dataset

        assert Dataset.__tablename__ == "datasets"

    def test_import_sync_log(self):
        """Test SyncLog model can be imported."""
        from portal_catalog.models import SyncLog

        assert SyncLog.__tablename__ == "sync_logs"

    def test_unknown_attribute(self):
        import portal_catalog.models as models

        with pytest.raises(AttributeError):
            models.Project  # noqa: B018


class TestTableRegistration:
    """Test both tables are registered with the metadata."""

    def test_tables_in_metadata(self):
        from sqlmodel import SQLModel

        from portal_catalog.models.dataset import Dataset  # noqa: F401
        from portal_catalog.models.sync_log import SyncLog  # noqa: F401

        assert {"datasets", "sync_logs"} <= set(SQLModel.metadata.tables)

    def test_dataset_inherits_base(self):
        from portal_catalog.models.base import BaseTableModel
        from portal_catalog.models.dataset import Dataset

        assert issubclass(Dataset, BaseTableModel)

    def test_sync_log_has_no_soft_delete(self):
        from portal_catalog.models.sync_log import SyncLog

        assert "deleted_at" not in SyncLog.model_fields
