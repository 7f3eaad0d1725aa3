"""
Store clients for the deal context engine.
"""

from .document_store import CollectionQuery, DocumentStore, FieldFilter, OrderBy, collection_path
from .postgres_store import PostgresDocumentStore

__all__ = [
    'CollectionQuery',
    'DocumentStore',
    'FieldFilter',
    'OrderBy',
    'collection_path',
    'PostgresDocumentStore',
]
