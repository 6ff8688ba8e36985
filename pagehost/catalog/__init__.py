"""
PageHost — Artifact Catalog Package
====================================
Records and the persisted catalog that indexes them.
"""

from pagehost.catalog.models import Artifact, BackupEntry, utcnow_iso
from pagehost.catalog.store import (
    ArtifactCatalog,
    close_catalog,
    get_catalog,
    init_catalog,
)

__all__ = [
    "Artifact",
    "ArtifactCatalog",
    "BackupEntry",
    "close_catalog",
    "get_catalog",
    "init_catalog",
    "utcnow_iso",
]
