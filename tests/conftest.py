"""
Pytest configuration and shared fixtures.

Key fixtures:
- fake_store: empty in-memory FakeDocumentStore
- acme_store: FakeDocumentStore seeded with the Acme Renewal deal graph
- tenant_id / deal_id: identifiers used by the seeded graph

Every test runs against FakeDocumentStore unless it targets the Postgres
client directly, in which case the SQLAlchemy engine is mocked.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from deal_context.clients.document_store import CollectionQuery


TENANT_ID = 'tenant_acme'
DEAL_ID = 'deal_acme_renewal'
COMPANY_ID = 'company_acme'
LOCATION_ID = 'location_hq'
JANE_ID = 'contact_jane'
SAM_ID = 'contact_sam'
SALESPERSON_ID = 'user_riley'


# =============================================================================
# Fake document store
# =============================================================================


def _lookup(document: dict[str, Any], path: str) -> Any:
    value: Any = document
    for segment in path.split('.'):
        if not isinstance(value, dict):
            return None
        value = value.get(segment)
    return value


class FakeDocumentStore:
    """
    In-memory DocumentStore with the query semantics of the Postgres store.

    Failures and delays are keyed by collection path or by
    'collection/doc_id'; every read is recorded in ``calls``.
    """

    def __init__(self):
        self.documents: dict[tuple[str, str], dict[str, dict[str, Any]]] = {}
        self.failures: dict[str, Exception] = {}
        self.delays: dict[str, float] = {}
        self.calls: list[tuple[str, str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def add(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        tenant_id: str = TENANT_ID,
    ) -> None:
        self.documents.setdefault((tenant_id, collection), {})[doc_id] = data

    def fail(self, key: str, error: Exception | None = None) -> None:
        self.failures[key] = error or RuntimeError(f'simulated failure: {key}')

    def delay(self, key: str, seconds: float) -> None:
        self.delays[key] = seconds

    def queries_for(self, collection: str) -> list[CollectionQuery]:
        return [q for kind, c, q in self.calls if kind == 'query' and c == collection]

    async def _enter(self, *keys: str) -> None:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = next((self.delays[k] for k in keys if k in self.delays), 0)
            await asyncio.sleep(delay)
            for key in keys:
                if key in self.failures:
                    raise self.failures[key]
        finally:
            self.in_flight -= 1

    async def get(self, tenant_id: str, collection: str, doc_id: str) -> dict[str, Any] | None:
        self.calls.append(('get', collection, doc_id))
        await self._enter(collection, f'{collection}/{doc_id}')
        data = self.documents.get((tenant_id, collection), {}).get(doc_id)
        if data is None:
            return None
        return {'id': doc_id, **data}

    async def query(self, tenant_id: str, query: CollectionQuery) -> list[dict[str, Any]]:
        self.calls.append(('query', query.collection, query))
        await self._enter(query.collection)

        documents = [
            {'id': doc_id, **data}
            for doc_id, data in self.documents.get((tenant_id, query.collection), {}).items()
        ]

        for field_filter in query.filters:
            if field_filter.op == '==':
                documents = [
                    d for d in documents if _lookup(d, field_filter.field) == field_filter.value
                ]
            else:
                documents = [
                    d
                    for d in documents
                    if field_filter.value in (_lookup(d, field_filter.field) or [])
                ]

        if query.order_by is not None:
            present = [d for d in documents if _lookup(d, query.order_by.field) is not None]
            missing = [d for d in documents if _lookup(d, query.order_by.field) is None]
            present.sort(
                key=lambda d: _lookup(d, query.order_by.field),
                reverse=query.order_by.direction == 'desc',
            )
            documents = present + missing

        if query.limit is not None:
            documents = documents[: query.limit]
        return documents


def seed_acme(store: FakeDocumentStore) -> FakeDocumentStore:
    """The Acme Renewal deal: one company, one location, two contacts, one salesperson."""
    store.add('crm_deals', DEAL_ID, {
        'name': 'Acme Renewal',
        'stage': 'Discovery',
        'estimatedRevenue': 250000,
        'associations': {
            'companies': [COMPANY_ID],
            'locations': [LOCATION_ID],
            'contacts': [JANE_ID, {'id': SAM_ID, 'name': 'Sam Lee'}],
            'salespeople': [SALESPERSON_ID],
        },
    })
    store.add('crm_companies', COMPANY_ID, {'name': 'Acme Corp', 'industry': 'Manufacturing'})
    store.add('locations', LOCATION_ID, {'name': 'Acme HQ', 'city': 'Dayton'})
    store.add('crm_contacts', JANE_ID, {
        'fullName': 'Jane Doe',
        'title': 'VP Operations',
        'contactProfile': {'dealRole': 'decision_maker', 'contactMethod': 'email'},
    })
    store.add('crm_contacts', SAM_ID, {
        'fullName': 'Sam Lee',
        'contactProfile': {'personality': 'analytical'},
    })
    store.add('users', SALESPERSON_ID, {'displayName': 'Riley Park'})
    store.add('salesperson_performance', SALESPERSON_ID, {
        'summary': 'Closes fast in manufacturing',
        'strengths': ['discovery', 'negotiation'],
    })

    for n in range(1, 4):
        store.add(f'crm_companies/{COMPANY_ID}/notes', f'cn{n}', {
            'content': f'Company note {n}',
            'createdAt': f'2024-01-0{n}T09:00:00Z',
        })
        store.add(f'crm_deals/{DEAL_ID}/notes', f'dn{n}', {
            'content': f'Deal note {n}',
            'createdAt': f'2024-02-0{n}T09:00:00Z',
        })

    store.add('activities', 'act1', {
        'dealId': DEAL_ID,
        'type': 'meeting_scheduled',
        'description': 'Kickoff meeting booked',
        'createdAt': '2024-03-02T10:00:00Z',
    })
    store.add('activities', 'act0', {
        'dealId': DEAL_ID,
        'type': 'email_sent',
        'description': 'Intro email sent',
        'createdAt': '2024-03-01T10:00:00Z',
    })
    store.add('email_logs', 'log1', {
        'dealId': DEAL_ID,
        'subject': 'Renewal terms',
        'createdAt': '2024-03-03T10:00:00Z',
    })
    store.add('emails', 'em1', {
        'contactId': JANE_ID,
        'subject': 'Pricing follow-up',
        'sentAt': '2024-03-04T10:00:00Z',
    })
    store.add('tasks', 'task1', {
        'title': 'Send proposal',
        'status': 'open',
        'associations': {'deals': [DEAL_ID], 'contacts': [JANE_ID]},
        'createdAt': '2024-03-05T10:00:00Z',
    })
    store.add('tone_settings', DEAL_ID, {'tone': 'consultative'})
    store.add('tone_settings', COMPANY_ID, {'tone': 'formal'})
    store.add('ai_inferences', 'inf1', {
        'entityId': COMPANY_ID,
        'entityType': 'company',
        'summary': 'Budget cycle resets in Q3',
        'createdAt': '2024-03-01T00:00:00Z',
    })
    store.add('ai_inferences', 'inf2', {
        'entityId': DEAL_ID,
        'entityType': 'deal',
        'summary': 'Champion engaged, legal review pending',
        'createdAt': '2024-03-06T00:00:00Z',
    })
    return store


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def tenant_id() -> str:
    return TENANT_ID


@pytest.fixture
def deal_id() -> str:
    return DEAL_ID


@pytest.fixture
def fake_store() -> FakeDocumentStore:
    """Empty in-memory document store."""
    return FakeDocumentStore()


@pytest.fixture
def acme_store() -> FakeDocumentStore:
    """Document store seeded with the Acme Renewal deal graph."""
    return seed_acme(FakeDocumentStore())
