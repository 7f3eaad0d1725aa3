"""
Tenant document store interface.

The context engine only reads. Collections are addressed by a path
relative to the tenant namespace (``crm_deals``, ``crm_deals/{id}/notes``);
documents come back as plain dicts carrying their identifier under ``id``.
"""

from dataclasses import dataclass, field
from typing import Any, Literal, Protocol

FilterOp = Literal['==', 'array-contains']


@dataclass(frozen=True)
class FieldFilter:
    """One predicate on a (possibly dotted) document field."""

    field: str
    op: FilterOp
    value: Any

    @property
    def path(self) -> list[str]:
        return self.field.split('.')


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: Literal['asc', 'desc'] = 'desc'

    @property
    def path(self) -> list[str]:
        return self.field.split('.')


@dataclass(frozen=True)
class CollectionQuery:
    """A filtered, ordered, limited read of one tenant collection."""

    collection: str
    filters: tuple[FieldFilter, ...] = field(default_factory=tuple)
    order_by: OrderBy | None = None
    limit: int | None = None

    def describe(self) -> dict[str, Any]:
        return {
            'collection': self.collection,
            'filters': [f'{f.field} {f.op} {f.value!r}' for f in self.filters],
            'order_by': f'{self.order_by.field} {self.order_by.direction}' if self.order_by else None,
            'limit': self.limit,
        }


class DocumentStore(Protocol):
    """Read interface the aggregator depends on."""

    async def get(
        self,
        tenant_id: str,
        collection: str,
        doc_id: str,
    ) -> dict[str, Any] | None:
        """Return the document with ``id`` set, or None when it does not exist."""
        ...

    async def query(
        self,
        tenant_id: str,
        query: CollectionQuery,
    ) -> list[dict[str, Any]]:
        """Return matching documents in the requested order, at most ``limit``."""
        ...


def collection_path(*segments: str) -> str:
    """Join collection path segments (``collection_path('crm_deals', deal_id, 'notes')``)."""
    return '/'.join(segments)