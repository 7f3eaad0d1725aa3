"""
Branch fetch routines over the tenant document store.

One coroutine per (entity type x sub-resource) pair. Each maps store
documents into typed records, preserves the store's ordering verbatim and
bounds every list with the query limit. Routines raise on store failure;
fault isolation is the aggregator's job.
"""

from typing import Any, TypeVar

from pydantic import ValidationError as RecordValidationError

from .clients.document_store import CollectionQuery, DocumentStore, FieldFilter, OrderBy, collection_path
from .errors import BranchFetchError, StoreError, wrap_store_error
from .logging import get_logger
from .models.records import (
    Activity,
    AIInference,
    Communication,
    Company,
    Contact,
    Deal,
    LearningData,
    Location,
    Note,
    Salesperson,
    SalespersonPerformance,
    StoreRecord,
    Task,
    ToneSettings,
)

logger = get_logger(__name__)

RecordT = TypeVar('RecordT', bound=StoreRecord)

# Collections (tenant relative)
DEALS = 'crm_deals'
COMPANIES = 'crm_companies'
LOCATIONS = 'locations'
CONTACTS = 'crm_contacts'
USERS = 'users'
NOTES = 'notes'
EMAILS = 'emails'
EMAIL_LOGS = 'email_logs'
ACTIVITIES = 'activities'
TASKS = 'tasks'
TONE_SETTINGS = 'tone_settings'
AI_INFERENCES = 'ai_inferences'
SALESPERSON_PERFORMANCE = 'salesperson_performance'
AI_LEARNING = 'ai_learning'
LEARNING_DATA_DOC = 'learning_data'

# Query limits
NOTES_LIMIT = 20
COMMUNICATIONS_LIMIT = 10
TASKS_LIMIT = 10
DEAL_ACTIVITIES_LIMIT = 20
ENTITY_ACTIVITY_LIMIT = 10
AI_INFERENCES_LIMIT = 5

# Entity type -> (record collection, key under a task's associations map)
ENTITY_COLLECTIONS: dict[str, tuple[str, str]] = {
    'deal': (DEALS, 'deals'),
    'company': (COMPANIES, 'companies'),
    'location': (LOCATIONS, 'locations'),
    'contact': (CONTACTS, 'contacts'),
    'salesperson': (USERS, 'salespeople'),
}


class DealContextRepository:
    """
    Typed, tenant-scoped reads for every branch of a deal context.

    Handles:
    - Entity records by id (deal, company, location, contact, salesperson)
    - Per-entity notes, communications, tasks, tone settings, AI inferences
    - Deal activities, company activity, salesperson performance
    - The tenant-wide learning data singleton
    """

    def __init__(self, store: DocumentStore):
        """
        Initialize the repository.

        Args:
            store: Connected document store, shared across concurrent reads
        """
        self.store = store

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get(
        self,
        model: type[RecordT],
        tenant_id: str,
        collection: str,
        doc_id: str,
    ) -> RecordT | None:
        document = await self.store.get(tenant_id, collection, doc_id)
        try:
            return model.from_document(document)
        except RecordValidationError as e:
            raise BranchFetchError(
                f'Malformed {model.__name__} document',
                context={'collection': collection, 'doc_id': doc_id, 'errors': e.error_count()},
            ) from e

    async def _query(
        self,
        model: type[RecordT],
        tenant_id: str,
        query: CollectionQuery,
    ) -> list[RecordT]:
        documents = await self.store.query(tenant_id, query)
        if query.limit is not None:
            documents = documents[: query.limit]
        try:
            return [model.model_validate(doc) for doc in documents]
        except RecordValidationError as e:
            raise BranchFetchError(
                f'Malformed {model.__name__} document',
                context={'query': query.describe(), 'errors': e.error_count()},
            ) from e

    @staticmethod
    def _collection_for(entity_type: str) -> str:
        return ENTITY_COLLECTIONS[entity_type][0]

    # =========================================================================
    # Entity records
    # =========================================================================

    async def get_deal(self, tenant_id: str, deal_id: str) -> Deal | None:
        return await self._get(Deal, tenant_id, DEALS, deal_id)

    async def get_company(self, tenant_id: str, company_id: str) -> Company | None:
        return await self._get(Company, tenant_id, COMPANIES, company_id)

    async def get_location(self, tenant_id: str, location_id: str) -> Location | None:
        return await self._get(Location, tenant_id, LOCATIONS, location_id)

    async def get_contact(self, tenant_id: str, contact_id: str) -> Contact | None:
        return await self._get(Contact, tenant_id, CONTACTS, contact_id)

    async def get_salesperson(self, tenant_id: str, salesperson_id: str) -> Salesperson | None:
        return await self._get(Salesperson, tenant_id, USERS, salesperson_id)

    # =========================================================================
    # Sub-resources shared by every entity type
    # =========================================================================

    async def get_notes(self, tenant_id: str, entity_type: str, entity_id: str) -> list[Note]:
        """Notes sub-collection of an entity, newest first."""
        query = CollectionQuery(
            collection=collection_path(self._collection_for(entity_type), entity_id, NOTES),
            order_by=OrderBy('createdAt', 'desc'),
            limit=NOTES_LIMIT,
        )
        return await self._query(Note, tenant_id, query)

    async def get_tasks(self, tenant_id: str, entity_type: str, entity_id: str) -> list[Task]:
        """Tasks whose associations list the entity, newest first."""
        association_key = ENTITY_COLLECTIONS[entity_type][1]
        query = CollectionQuery(
            collection=TASKS,
            filters=(FieldFilter(f'associations.{association_key}', 'array-contains', entity_id),),
            order_by=OrderBy('createdAt', 'desc'),
            limit=TASKS_LIMIT,
        )
        return await self._query(Task, tenant_id, query)

    async def get_tone_settings(self, tenant_id: str, entity_id: str) -> ToneSettings:
        """Tone settings keyed by entity id; empty settings when absent."""
        settings = await self._get(ToneSettings, tenant_id, TONE_SETTINGS, entity_id)
        return settings or ToneSettings()

    async def get_ai_inferences(
        self,
        tenant_id: str,
        entity_type: str,
        entity_id: str,
    ) -> list[AIInference]:
        query = CollectionQuery(
            collection=AI_INFERENCES,
            filters=(
                FieldFilter('entityId', '==', entity_id),
                FieldFilter('entityType', '==', entity_type),
            ),
            order_by=OrderBy('createdAt', 'desc'),
            limit=AI_INFERENCES_LIMIT,
        )
        return await self._query(AIInference, tenant_id, query)

    async def get_communications(
        self,
        tenant_id: str,
        field: str,
        entity_id: str,
    ) -> list[Communication]:
        """Emails linked through ``field`` (companyId, contactId), newest sent first."""
        query = CollectionQuery(
            collection=EMAILS,
            filters=(FieldFilter(field, '==', entity_id),),
            order_by=OrderBy('sentAt', 'desc'),
            limit=COMMUNICATIONS_LIMIT,
        )
        return await self._query(Communication, tenant_id, query)

    # =========================================================================
    # Deal-only and entity-specific reads
    # =========================================================================

    async def get_deal_communications(self, tenant_id: str, deal_id: str) -> list[Communication]:
        """
        Deal communications from the email log, falling back to the
        emails collection when the primary query fails.
        """
        primary = CollectionQuery(
            collection=EMAIL_LOGS,
            filters=(FieldFilter('dealId', '==', deal_id),),
            order_by=OrderBy('createdAt', 'desc'),
            limit=COMMUNICATIONS_LIMIT,
        )
        try:
            return await self._query(Communication, tenant_id, primary)
        except Exception as e:
            error = e if isinstance(e, StoreError) else wrap_store_error(e)
            logger.warning(
                'repository.deal_communications_fallback',
                error=str(error),
                error_type=type(error).__name__,
            )

        return await self.get_communications(tenant_id, 'dealId', deal_id)

    async def get_deal_activities(self, tenant_id: str, deal_id: str) -> list[Activity]:
        query = CollectionQuery(
            collection=ACTIVITIES,
            filters=(FieldFilter('dealId', '==', deal_id),),
            order_by=OrderBy('createdAt', 'desc'),
            limit=DEAL_ACTIVITIES_LIMIT,
        )
        return await self._query(Activity, tenant_id, query)

    async def get_company_activity(self, tenant_id: str, company_id: str) -> list[Activity]:
        query = CollectionQuery(
            collection=ACTIVITIES,
            filters=(FieldFilter('companyId', '==', company_id),),
            order_by=OrderBy('createdAt', 'desc'),
            limit=ENTITY_ACTIVITY_LIMIT,
        )
        return await self._query(Activity, tenant_id, query)

    async def get_assigned_tasks(self, tenant_id: str, salesperson_id: str) -> list[Task]:
        """Tasks assigned to a salesperson, newest first."""
        query = CollectionQuery(
            collection=TASKS,
            filters=(FieldFilter('assignedTo', '==', salesperson_id),),
            order_by=OrderBy('createdAt', 'desc'),
            limit=TASKS_LIMIT,
        )
        return await self._query(Task, tenant_id, query)

    async def get_salesperson_performance(
        self,
        tenant_id: str,
        salesperson_id: str,
    ) -> SalespersonPerformance | None:
        return await self._get(
            SalespersonPerformance, tenant_id, SALESPERSON_PERFORMANCE, salesperson_id
        )

    async def get_learning_data(self, tenant_id: str) -> LearningData:
        """Tenant-wide learning statistics; the structural default when absent."""
        document: dict[str, Any] | None = await self.store.get(
            tenant_id, AI_LEARNING, LEARNING_DATA_DOC
        )
        if document is None:
            return LearningData()
        return LearningData.model_validate(document)
