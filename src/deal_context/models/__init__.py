"""
Data models for the deal context engine.

Records mirror store documents; context models are the in-memory aggregate.
"""

from .records import (
    StoreRecord,
    Deal,
    DealAssociations,
    Company,
    Location,
    Contact,
    ContactProfile,
    Salesperson,
    Note,
    Communication,
    Activity,
    Task,
    ToneSettings,
    AIInference,
    SalespersonPerformance,
    LearningData,
)
from .context import (
    EntityAssociations,
    ContactPreferences,
    CompanyContext,
    LocationContext,
    ContactContext,
    SalespersonContext,
    AssociationSummary,
    EnhancedDealContext,
    ContextInsights,
)

__all__ = [
    'StoreRecord',
    'Deal',
    'DealAssociations',
    'Company',
    'Location',
    'Contact',
    'ContactProfile',
    'Salesperson',
    'Note',
    'Communication',
    'Activity',
    'Task',
    'ToneSettings',
    'AIInference',
    'SalespersonPerformance',
    'LearningData',
    'EntityAssociations',
    'ContactPreferences',
    'CompanyContext',
    'LocationContext',
    'ContactContext',
    'SalespersonContext',
    'AssociationSummary',
    'EnhancedDealContext',
    'ContextInsights',
]
