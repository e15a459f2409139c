# campops_console/config/__init__.py
# Exposes the process-wide 'settings' instance and its config models.
# Override any field with a CAMPOPS_-prefixed environment variable.

from .settings import Settings, TestCatalogEntry, VendorOption, WorkflowConfig, settings

__all__ = ["Settings", "TestCatalogEntry", "VendorOption", "WorkflowConfig", "settings"]
