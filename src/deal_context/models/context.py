"""
Aggregated context models.

EnhancedDealContext is the request-scoped aggregate built by the
ContextAggregator: the deal plus one level of related entities, each
wrapped with its own notes, communications, tasks, tone and AI
inferences. Every list defaults to an empty list and every record-valued
slot to its empty default, so consumers never branch on presence.

ContextInsights holds the deterministic sentences derived from it.
"""

from typing import Any, ClassVar

from pydantic import BaseModel, Field

from .records import (
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
    Task,
    ToneSettings,
)


class EntityAssociations(BaseModel):
    """Identifiers an entity links to. Never expanded into records."""

    companies: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    contacts: list[str] = Field(default_factory=list)
    salespeople: list[str] = Field(default_factory=list)
    deals: list[str] = Field(default_factory=list)


class ContactPreferences(BaseModel):
    contact_method: str | None = None
    communication_style: str | None = None
    preferred_contact_time: str | None = None


class CompanyContext(BaseModel):
    company: Company | None = None
    notes: list[Note] = Field(default_factory=list)
    communications: list[Communication] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    tone_settings: ToneSettings = Field(default_factory=ToneSettings)
    ai_inferences: list[AIInference] = Field(default_factory=list)
    recent_activity: list[Activity] = Field(default_factory=list)
    associations: EntityAssociations = Field(default_factory=EntityAssociations)


class LocationContext(BaseModel):
    location: Location | None = None
    notes: list[Note] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    tone_settings: ToneSettings = Field(default_factory=ToneSettings)
    ai_inferences: list[AIInference] = Field(default_factory=list)
    associations: EntityAssociations = Field(default_factory=EntityAssociations)


class ContactContext(BaseModel):
    contact: Contact | None = None
    notes: list[Note] = Field(default_factory=list)
    communications: list[Communication] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    tone_settings: ToneSettings = Field(default_factory=ToneSettings)
    ai_inferences: list[AIInference] = Field(default_factory=list)

    # Derived from the contact's embedded profile
    deal_role: str | None = None
    personality: str | None = None
    preferences: ContactPreferences = Field(default_factory=ContactPreferences)

    associations: EntityAssociations = Field(default_factory=EntityAssociations)

    @property
    def name(self) -> str | None:
        return self.contact.display_name if self.contact else None


class SalespersonContext(BaseModel):
    salesperson: Salesperson | None = None
    notes: list[Note] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    tone_settings: ToneSettings = Field(default_factory=ToneSettings)
    ai_inferences: list[AIInference] = Field(default_factory=list)
    performance: SalespersonPerformance | None = None
    associations: EntityAssociations = Field(default_factory=EntityAssociations)

    @property
    def name(self) -> str | None:
        return self.salesperson.label if self.salesperson else None


class AssociationSummary(BaseModel):
    """Resolved deal associations plus data-quality counters."""

    company_id: str | None = None
    location_ids: list[str] = Field(default_factory=list)
    contact_ids: list[str] = Field(default_factory=list)
    salesperson_ids: list[str] = Field(default_factory=list)
    dropped_entries: int = Field(
        default=0, description='Malformed association entries discarded during resolution'
    )

    @property
    def total_associations(self) -> int:
        return (
            (1 if self.company_id else 0)
            + len(self.location_ids)
            + len(self.contact_ids)
            + len(self.salesperson_ids)
        )


class EnhancedDealContext(BaseModel):
    """Everything known about a deal for one coaching invocation."""

    deal: Deal | None = None
    company: CompanyContext | None = None
    locations: list[LocationContext] = Field(default_factory=list)
    contacts: list[ContactContext] = Field(default_factory=list)
    salespeople: list[SalespersonContext] = Field(default_factory=list)

    # Deal-scoped sub-resources
    notes: list[Note] = Field(default_factory=list)
    communications: list[Communication] = Field(default_factory=list)
    activities: list[Activity] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
    tone_settings: ToneSettings = Field(default_factory=ToneSettings)
    ai_inferences: list[AIInference] = Field(default_factory=list)

    learning_data: LearningData = Field(default_factory=LearningData)
    associations: AssociationSummary = Field(default_factory=AssociationSummary)

    def counts(self) -> dict[str, int]:
        """Entity and activity counts, for logging and API responses."""
        return {
            'locations': len(self.locations),
            'contacts': len(self.contacts),
            'salespeople': len(self.salespeople),
            'notes': len(self.notes),
            'communications': len(self.communications),
            'activities': len(self.activities),
            'tasks': len(self.tasks),
            'ai_inferences': len(self.ai_inferences),
        }


class ContextInsights(BaseModel):
    """Six categorized lists of insight sentences, most recent first."""

    company: list[str] = Field(default_factory=list)
    contact: list[str] = Field(default_factory=list)
    salesperson: list[str] = Field(default_factory=list)
    activity: list[str] = Field(default_factory=list)
    tone: list[str] = Field(default_factory=list)
    ai: list[str] = Field(default_factory=list)

    # Fixed rendering order for prompts
    CATEGORIES: ClassVar[tuple[str, ...]] = ('company', 'contact', 'salesperson', 'activity', 'tone', 'ai')

    def ordered(self) -> list[str]:
        """All insights concatenated in category order."""
        lines: list[str] = []
        for category in self.CATEGORIES:
            lines.extend(getattr(self, category))
        return lines

    def to_dict(self) -> dict[str, Any]:
        return {category: list(getattr(self, category)) for category in self.CATEGORIES}
