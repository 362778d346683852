"""
Catalog — classify cart lines against products and books.

    manifest = await resolve_lines(SqlCatalogStore(session_factory), request.items)
"""

from stemshop.catalog._store import CatalogEntry, CatalogStore, SqlCatalogStore
from stemshop.catalog._resolver import DELETED_MARKER, resolve_lines

__all__ = (
    "CatalogEntry",
    "CatalogStore",
    "SqlCatalogStore",
    "DELETED_MARKER",
    "resolve_lines",
)
