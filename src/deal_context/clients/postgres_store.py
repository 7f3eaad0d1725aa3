"""
Postgres (JSONB) implementation of the tenant document store.

Documents live in one table keyed by (tenant_id, collection, doc_id) with
the document body in a JSONB column. Collection queries translate
equality and array-contains filters into JSONB path predicates and keep
the requested ordering and limit.

Uses SQLAlchemy 2.0 async engine + asyncpg for raw SQL execution.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..errors import StoreConnectionError, StoreQueryError, wrap_store_error
from .document_store import CollectionQuery, FieldFilter

logger = structlog.get_logger(__name__)

DOCUMENTS_TABLE = 'documents'

_SCHEMA_STATEMENTS = (
    f"""
    CREATE TABLE IF NOT EXISTS {DOCUMENTS_TABLE} (
        tenant_id   TEXT NOT NULL,
        collection  TEXT NOT NULL,
        doc_id      TEXT NOT NULL,
        data        JSONB NOT NULL DEFAULT '{{}}'::jsonb,
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        PRIMARY KEY (tenant_id, collection, doc_id)
    )
    """,
    f"""
    CREATE INDEX IF NOT EXISTS {DOCUMENTS_TABLE}_data_gin
        ON {DOCUMENTS_TABLE} USING GIN (data jsonb_path_ops)
    """,
)


def _sanitize_url(url: str) -> str:
    """Remove URL query params that asyncpg does not understand.

    Pooler URLs often include ``channel_binding=require`` and ``sslmode=require``
    which are libpq parameters. asyncpg rejects unknown connection params.
    """
    _STRIP_PARAMS = {'channel_binding', 'sslmode'}
    parsed = urlparse(url)
    if not parsed.query:
        return url
    params = parse_qs(parsed.query)
    filtered = {k: v for k, v in params.items() if k not in _STRIP_PARAMS}
    new_query = urlencode(filtered, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def _normalize_driver(url: str) -> str:
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql+asyncpg://', 1)
    if url.startswith('postgresql://') and '+asyncpg' not in url:
        return url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return url


def _filter_clause(index: int, field_filter: FieldFilter) -> tuple[str, dict[str, Any]]:
    """Translate one FieldFilter into a JSONB predicate and its bind params."""
    path_key = f'p{index}'
    value_key = f'v{index}'

    if field_filter.op == '==':
        clause = f'data #> CAST(:{path_key} AS text[]) = CAST(:{value_key} AS jsonb)'
        value = json.dumps(field_filter.value)
    elif field_filter.op == 'array-contains':
        clause = f'data #> CAST(:{path_key} AS text[]) @> CAST(:{value_key} AS jsonb)'
        value = json.dumps([field_filter.value])
    else:
        raise StoreQueryError(
            f"Unsupported filter operator: {field_filter.op}",
            context={'field': field_filter.field},
        )

    return clause, {path_key: field_filter.path, value_key: value}


def build_query_sql(tenant_id: str, query: CollectionQuery) -> tuple[str, dict[str, Any]]:
    """
    Build the SELECT for a collection query.

    Field paths and values are always bound; only the sort direction is
    interpolated, and it is restricted to ASC/DESC.
    """
    clauses = ['tenant_id = :tenant_id', 'collection = :collection']
    params: dict[str, Any] = {'tenant_id': tenant_id, 'collection': query.collection}

    for i, field_filter in enumerate(query.filters):
        clause, clause_params = _filter_clause(i, field_filter)
        clauses.append(clause)
        params.update(clause_params)

    sql = f'SELECT doc_id, data FROM {DOCUMENTS_TABLE} WHERE ' + ' AND '.join(clauses)

    if query.order_by is not None:
        direction = query.order_by.direction.lower()
        if direction not in ('asc', 'desc'):
            raise StoreQueryError(
                f"Unsupported sort direction: {query.order_by.direction}",
                context={'field': query.order_by.field},
            )
        sql += (
            f' ORDER BY data #> CAST(:order_path AS text[]) {direction.upper()} NULLS LAST, doc_id'
        )
        params['order_path'] = query.order_by.path

    if query.limit is not None:
        sql += ' LIMIT :limit'
        params['limit'] = query.limit

    return sql, params


def _row_to_document(doc_id: str, data: Any) -> dict[str, Any]:
    if isinstance(data, (str, bytes)):
        data = json.loads(data)
    return {'id': doc_id, **(data or {})}


class PostgresDocumentStore:
    """
    Async, read-only document store over a Postgres JSONB table.

    Safe for concurrent use: every read checks a connection out of the
    engine pool for its own duration.
    """

    def __init__(self, database_url: str | None = None):
        """
        Args:
            database_url: Postgres connection URL. ``postgres://`` and
                          ``postgresql://`` URLs are converted to use asyncpg.
        """
        self._engine: AsyncEngine | None = None
        self._database_url = database_url

    async def connect(self, database_url: str | None = None) -> None:
        """Create the async engine. No-op if already connected."""
        if self._engine is not None:
            return

        url = database_url or self._database_url
        if not url:
            raise ValueError('database_url is required')

        url = _normalize_driver(_sanitize_url(url))

        self._engine = create_async_engine(
            url,
            pool_size=10,
            max_overflow=10,
            pool_pre_ping=True,
            pool_timeout=30,
            connect_args={'prepared_statement_cache_size': 0},
        )
        logger.info('postgres_store.connected')

    async def close(self) -> None:
        """Dispose of the engine and connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info('postgres_store.closed')

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError('PostgresDocumentStore not connected, call connect() first')
        return self._engine

    async def verify_connectivity(self) -> bool:
        """Return True if we can execute a simple query."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text('SELECT 1'))
            return True
        except Exception:
            logger.exception('postgres_store.connectivity_check_failed')
            return False

    async def setup_schema(self) -> None:
        """Create the documents table and its JSONB index if missing."""
        async with self.engine.begin() as conn:
            for statement in _SCHEMA_STATEMENTS:
                await conn.execute(text(statement))
        logger.info('postgres_store.schema_ready')

    # =========================================================================
    # Reads
    # =========================================================================

    @retry(
        retry=retry_if_exception_type(StoreConnectionError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        reraise=True,
    )
    async def _fetch(self, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Execute a SELECT and return its rows as mappings."""
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(text(sql), params)
                return [dict(row) for row in result.mappings().all()]
        except RuntimeError:
            raise
        except Exception as e:
            raise wrap_store_error(e, context={'sql': sql.split(' WHERE ')[0]})

    async def get(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
    ) -> dict[str, Any] | None:
        """Fetch one document by id within a tenant collection."""
        sql = (
            f'SELECT doc_id, data FROM {DOCUMENTS_TABLE} '
            'WHERE tenant_id = :tenant_id AND collection = :collection AND doc_id = :doc_id'
        )
        rows = await self._fetch(
            sql,
            {'tenant_id': tenant_id, 'collection': collection, 'doc_id': doc_id},
        )
        if not rows:
            return None
        return _row_to_document(rows[0]['doc_id'], rows[0]['data'])

    async def query(
        self,
        tenant_id: str,
        query: CollectionQuery,
    ) -> list[dict[str, Any]]:
        """Run a filtered, ordered, limited collection query."""
        sql, params = build_query_sql(tenant_id, query)
        rows = await self._fetch(sql, params)

        logger.debug(
            'postgres_store.query',
            collection=query.collection,
            returned=len(rows),
        )
        return [_row_to_document(row['doc_id'], row['data']) for row in rows]
