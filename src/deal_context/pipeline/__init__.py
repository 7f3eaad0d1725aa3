"""
Aggregation and insight extraction.
"""

from .aggregator import (
    AggregationReport,
    AggregationResult,
    BranchOutcome,
    ContextAggregator,
    get_enhanced_deal_context,
)
from .insights import InsightExtractor, generate_context_insights

__all__ = [
    'AggregationReport',
    'AggregationResult',
    'BranchOutcome',
    'ContextAggregator',
    'get_enhanced_deal_context',
    'InsightExtractor',
    'generate_context_insights',
]
