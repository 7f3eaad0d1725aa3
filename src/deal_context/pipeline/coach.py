"""
DealCoach: aggregate a deal's context and assemble the coaching prompt bundle.

The bundle is what a chat-completion caller needs: a system prompt, the
keyword-enhanced user message, and the summary/tone/recommendation lines
for display. Calling a language model is left to the caller.
"""

from dataclasses import dataclass
from typing import Any

from ..clients.document_store import DocumentStore
from ..logging import get_logger, logging_context
from ..models.context import ContextInsights, EnhancedDealContext
from ..prompts.coach_prompts import (
    enhance_user_prompt,
    generate_context_summary,
    generate_enhanced_system_prompt,
    generate_personalized_recommendations,
    generate_tone_aware_instructions,
)
from .aggregator import AggregationReport, ContextAggregator
from .insights import InsightExtractor

logger = get_logger(__name__)


@dataclass
class CoachingPrompt:
    """Prompt bundle for one coaching turn."""

    system_prompt: str
    user_message: str
    summary: str
    tone_instructions: str
    recommendations: str
    insights: ContextInsights
    context: EnhancedDealContext
    report: AggregationReport

    def messages(self) -> list[dict[str, str]]:
        """Chat-completion style message list."""
        return [
            {'role': 'system', 'content': self.system_prompt},
            {'role': 'user', 'content': self.user_message},
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            'system_prompt': self.system_prompt,
            'user_message': self.user_message,
            'summary': self.summary,
            'tone_instructions': self.tone_instructions,
            'recommendations': self.recommendations,
            'insights': self.insights.to_dict(),
            'report': self.report.to_dict(),
        }


class DealCoach:
    """
    Usage:
        coach = DealCoach(store)
        prompt = await coach.prepare(deal_id, tenant_id, user_id, 'Who should I contact?')
        messages = prompt.messages()
    """

    def __init__(
        self,
        store: DocumentStore | None = None,
        aggregator: ContextAggregator | None = None,
        extractor: InsightExtractor | None = None,
        insight_char_budget: int | None = None,
    ):
        if aggregator is None:
            if store is None:
                raise ValueError('DealCoach requires a store or an aggregator')
            aggregator = ContextAggregator(store)
        self.aggregator = aggregator
        self.extractor = extractor or InsightExtractor()
        self.insight_char_budget = insight_char_budget

    async def prepare(
        self,
        deal_id: str,
        tenant_id: str,
        user_id: str | None,
        message: str,
    ) -> CoachingPrompt:
        """Aggregate the deal context and build the prompt bundle. Never raises on fetch failures."""
        result = await self.aggregator.aggregate(deal_id, tenant_id, user_id)
        context = result.context

        with logging_context(tenant_id=tenant_id, deal_id=deal_id):
            insights = self.extractor.extract(context)
            prompt = CoachingPrompt(
                system_prompt=generate_enhanced_system_prompt(
                    context, insights, self.insight_char_budget
                ),
                user_message=enhance_user_prompt(message, context, insights),
                summary=generate_context_summary(context),
                tone_instructions=generate_tone_aware_instructions(context),
                recommendations=generate_personalized_recommendations(context),
                insights=insights,
                context=context,
                report=result.report,
            )
            logger.info(
                'coach.prompt_ready',
                insights=len(insights.ordered()),
                system_prompt_chars=len(prompt.system_prompt),
                degraded=result.report.degraded,
            )

        return prompt
