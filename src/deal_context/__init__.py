"""
Deal Context Engine

Aggregates everything known about a sales deal (company, locations, contacts,
salespeople, notes, communications, activities, tasks, tone settings, AI
inferences and tenant learning data) from a document store, and turns it into
categorized insights and coaching prompts.
"""

__version__ = '0.1.0'

# Re-export key classes for convenience
from .pipeline import (
    AggregationReport,
    AggregationResult,
    BranchOutcome,
    ContextAggregator,
    InsightExtractor,
    generate_context_insights,
    get_enhanced_deal_context,
)
from .pipeline.coach import CoachingPrompt, DealCoach
from .prompts import (
    enhance_user_prompt,
    generate_context_summary,
    generate_enhanced_system_prompt,
    generate_personalized_recommendations,
    generate_tone_aware_instructions,
)
from .repository import DealContextRepository
from .resolver import AssociationResolver
from .clients import DocumentStore, PostgresDocumentStore
from .models import ContextInsights, EnhancedDealContext
from .logging import (
    configure_logging,
    get_logger,
    logging_context,
    StageTimer,
)
from .errors import (
    DealContextError,
    ContextError,
    ValidationError,
    BranchFetchError,
    AggregationError,
    StoreError,
    StoreConnectionError,
    StoreQueryError,
)

__all__ = [
    # Version
    '__version__',
    # Aggregation
    'ContextAggregator',
    'AggregationReport',
    'AggregationResult',
    'BranchOutcome',
    'get_enhanced_deal_context',
    # Insights and prompts
    'InsightExtractor',
    'generate_context_insights',
    'enhance_user_prompt',
    'generate_context_summary',
    'generate_enhanced_system_prompt',
    'generate_personalized_recommendations',
    'generate_tone_aware_instructions',
    # Coach
    'DealCoach',
    'CoachingPrompt',
    # Data access
    'DealContextRepository',
    'AssociationResolver',
    'DocumentStore',
    'PostgresDocumentStore',
    # Models
    'ContextInsights',
    'EnhancedDealContext',
    # Logging
    'configure_logging',
    'get_logger',
    'logging_context',
    'StageTimer',
    # Errors
    'DealContextError',
    'ContextError',
    'ValidationError',
    'BranchFetchError',
    'AggregationError',
    'StoreError',
    'StoreConnectionError',
    'StoreQueryError',
]
