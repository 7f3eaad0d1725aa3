"""
Store-backed record models for the deal context engine.

Every record mirrors one document read from the tenant document store.
Store documents use camelCase keys; models expose snake_case attributes
and accept either spelling. Only fields the engine reads are declared;
everything else rides along through ``extra='allow'`` untyped, so an odd
timestamp or author id never rejects the record.

Absent scalar fields are ``None``; list fields default to ``[]``. Nested
blocks that are not mappings read as ``None``.
"""

from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def _as_list(value: Any) -> list[Any]:
    """Association slots hold lists; tolerate null and single entries."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _mapping_or_none(value: Any) -> Any:
    """Nested blocks must be mappings; anything else reads as absent."""
    if value is None or isinstance(value, (dict, BaseModel)):
        return value
    return None


class StoreRecord(BaseModel):
    """Base class for documents read from the store."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='allow',
    )

    id: str | None = Field(default=None, description='Document identifier')

    @classmethod
    def from_document(cls, document: dict[str, Any] | None):
        """Build a record from a raw store document, or None when absent."""
        if document is None:
            return None
        return cls.model_validate(document)


# =============================================================================
# Deal
# =============================================================================


class DealAssociations(StoreRecord):
    """
    Newer associations map stored on a deal (and on other entities).

    Entries may be bare identifiers or identifier-bearing records
    (``{"id": "..."}``); normalization happens in the resolver.
    """

    companies: list[Any] = Field(default_factory=list)
    locations: list[Any] = Field(default_factory=list)
    contacts: list[Any] = Field(default_factory=list)
    salespeople: list[Any] = Field(default_factory=list)
    deals: list[Any] = Field(default_factory=list)
    primary_company_id: Any = None

    @field_validator('companies', 'locations', 'contacts', 'salespeople', 'deals', mode='before')
    @classmethod
    def _coerce_list(cls, value: Any) -> list[Any]:
        return _as_list(value)


Associations = Annotated[DealAssociations | None, BeforeValidator(_mapping_or_none)]


class Deal(StoreRecord):
    """The sales opportunity being coached."""

    name: str | None = None
    stage: str | None = None
    estimated_revenue: float | None = Field(
        default=None, description='Estimated deal value in account currency'
    )
    associations: Associations = None

    # Legacy flat association fields
    company_id: Any = None
    contact_ids: list[Any] = Field(default_factory=list)

    @field_validator('contact_ids', mode='before')
    @classmethod
    def _coerce_contact_ids(cls, value: Any) -> list[Any]:
        return _as_list(value)


# =============================================================================
# Related entities
# =============================================================================


class Company(StoreRecord):
    name: str | None = None
    industry: str | None = None
    associations: Associations = None


class Location(StoreRecord):
    name: str | None = None
    associations: Associations = None


class ContactProfile(StoreRecord):
    """Derived profile block embedded in a contact document."""

    deal_role: str | None = None
    personality: str | None = None
    contact_method: str | None = None
    communication_style: str | None = None
    preferred_contact_time: str | None = None


class Contact(StoreRecord):
    full_name: str | None = None
    preferred_name: str | None = None
    name: str | None = None
    title: str | None = None
    contact_profile: Annotated[ContactProfile | None, BeforeValidator(_mapping_or_none)] = None
    associations: Associations = None

    @property
    def display_name(self) -> str | None:
        """Preferred name, falling back to full name, then plain name."""
        return self.preferred_name or self.full_name or self.name


class Salesperson(StoreRecord):
    display_name: str | None = None
    name: str | None = None
    associations: Associations = None

    @property
    def label(self) -> str | None:
        return self.display_name or self.name


# =============================================================================
# Sub-resources
# =============================================================================


class Note(StoreRecord):
    content: str | None = None


class Communication(StoreRecord):
    """An email (or email log entry) linked to a deal, company or contact."""

    subject: str | None = None


class Activity(StoreRecord):
    type: str | None = None
    description: str | None = None

    @property
    def label(self) -> str | None:
        return self.description or self.type


class Task(StoreRecord):
    title: str | None = None
    status: str | None = None


class ToneSettings(StoreRecord):
    tone: str | None = None


class AIInference(StoreRecord):
    summary: str | None = None
    content: str | None = None

    @property
    def text(self) -> str | None:
        return self.summary or self.content


class SalespersonPerformance(StoreRecord):
    summary: str | None = None
    strengths: str | list[str] | None = None

    @property
    def strengths_text(self) -> str | None:
        if isinstance(self.strengths, list):
            return ', '.join(s for s in self.strengths if s) or None
        return self.strengths or None


class LearningData(StoreRecord):
    """Tenant-wide learning statistics singleton."""

    successful_patterns: list[Any] = Field(default_factory=list)
    failed_patterns: list[Any] = Field(default_factory=list)
    salesperson_performance: dict[str, Any] = Field(default_factory=dict)
    stage_success_rates: dict[str, Any] = Field(default_factory=dict)
    common_objections: list[Any] = Field(default_factory=list)
    effective_questions: list[Any] = Field(default_factory=list)
