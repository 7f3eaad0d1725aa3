"""
Association resolution for deals and their related entities.

Deals carry relationships in two shapes: the newer ``associations`` map
(lists keyed by entity type, optionally with a designated primary company)
and legacy flat fields (``companyId``, ``contactIds``). The resolver
reconciles them into one ordered, de-duplicated identifier list per
entity type.

Company precedence: designated primary -> first associations entry ->
legacy ``companyId`` -> none. Contacts use the associations list when it
yields any identifier, otherwise the legacy list. Locations and
salespeople only exist in the associations map.

Entries may be bare identifiers or records bearing an ``id``; anything
else is dropped and counted.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

from .logging import get_logger
from .models.context import AssociationSummary, EntityAssociations
from .models.records import DealAssociations, Deal

logger = get_logger(__name__)


@dataclass
class ResolvedAssociations:
    """Ordered, de-duplicated identifiers related to one deal."""

    company_id: str | None = None
    location_ids: list[str] = field(default_factory=list)
    contact_ids: list[str] = field(default_factory=list)
    salesperson_ids: list[str] = field(default_factory=list)
    dropped_entries: int = 0

    @property
    def is_empty(self) -> bool:
        return not (
            self.company_id or self.location_ids or self.contact_ids or self.salesperson_ids
        )

    def to_summary(self) -> AssociationSummary:
        return AssociationSummary(
            company_id=self.company_id,
            location_ids=list(self.location_ids),
            contact_ids=list(self.contact_ids),
            salesperson_ids=list(self.salesperson_ids),
            dropped_entries=self.dropped_entries,
        )


def normalize_identifier(entry: Any) -> str | None:
    """
    Reduce an association entry to a plain identifier.

    Accepts a non-empty string, or a mapping/object with a non-empty
    string ``id``. Returns None for anything else.
    """
    if isinstance(entry, str):
        entry = entry.strip()
        return entry or None
    if isinstance(entry, dict):
        candidate = entry.get('id')
    else:
        candidate = getattr(entry, 'id', None)
    if isinstance(candidate, str) and candidate.strip():
        return candidate.strip()
    return None


class _IdCollector:
    """Accumulates identifiers in first-seen order and counts rejects."""

    def __init__(self):
        self.dropped = 0

    def collect(self, entries: Iterable[Any] | None) -> list[str]:
        seen: set[str] = set()
        ids: list[str] = []
        for entry in entries or []:
            identifier = normalize_identifier(entry)
            if identifier is None:
                self.dropped += 1
                continue
            if identifier in seen:
                continue
            seen.add(identifier)
            ids.append(identifier)
        return ids


class AssociationResolver:
    """Derives the canonical related-entity identifiers for a deal."""

    def resolve(self, deal: Deal | None) -> ResolvedAssociations:
        """
        Resolve a deal's associations. Never raises; a missing deal or
        missing association data yields empty results.
        """
        if deal is None:
            return ResolvedAssociations()

        collector = _IdCollector()
        associations = deal.associations or DealAssociations()

        company_ids = collector.collect(associations.companies)
        location_ids = collector.collect(associations.locations)
        associated_contact_ids = collector.collect(associations.contacts)
        salesperson_ids = collector.collect(associations.salespeople)
        legacy_contact_ids = collector.collect(deal.contact_ids)

        company_id = (
            normalize_identifier(associations.primary_company_id)
            or (company_ids[0] if company_ids else None)
            or normalize_identifier(deal.company_id)
        )

        resolved = ResolvedAssociations(
            company_id=company_id,
            location_ids=location_ids,
            contact_ids=associated_contact_ids or legacy_contact_ids,
            salesperson_ids=salesperson_ids,
            dropped_entries=collector.dropped,
        )

        if resolved.dropped_entries:
            logger.warning(
                'resolver.malformed_entries_dropped',
                deal_id=deal.id,
                dropped=resolved.dropped_entries,
            )

        return resolved

    def resolve_entity(self, associations: DealAssociations | None) -> EntityAssociations:
        """Normalize an entity's own associations map (one level, ids only)."""
        if associations is None:
            return EntityAssociations()

        collector = _IdCollector()
        return EntityAssociations(
            companies=collector.collect(associations.companies),
            locations=collector.collect(associations.locations),
            contacts=collector.collect(associations.contacts),
            salespeople=collector.collect(associations.salespeople),
            deals=collector.collect(associations.deals),
        )
