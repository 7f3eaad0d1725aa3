"""
Tests for the DealCoach service.

Tests cover:
- Prompt bundle assembled from an aggregated context
- Chat message list shape
- Degraded aggregation still yields a prompt
- Construction requires a store or an aggregator
"""

from unittest.mock import AsyncMock

import pytest

from deal_context.models import EnhancedDealContext
from deal_context.pipeline.aggregator import AggregationReport, AggregationResult, ContextAggregator
from deal_context.pipeline.coach import CoachingPrompt, DealCoach

from conftest import COMPANY_ID, DEAL_ID, TENANT_ID


class TestDealCoach:
    @pytest.mark.asyncio
    async def test_prepare_builds_bundle(self, acme_store):
        prompt = await DealCoach(acme_store).prepare(
            DEAL_ID, TENANT_ID, 'user_1', 'Who is the decision maker for this contact?'
        )

        assert isinstance(prompt, CoachingPrompt)
        assert '- Deal: Acme Renewal (Discovery)' in prompt.system_prompt
        assert 'Relevant contact context: Contact 1: Jane Doe (VP Operations)' in prompt.user_message
        assert 'Focus on Jane Doe as the primary decision maker' in prompt.recommendations
        assert 'Prepare for the upcoming meeting' in prompt.recommendations
        assert prompt.tone_instructions.startswith('TONE INSTRUCTIONS: Use consultative tone for this deal')
        assert prompt.summary.startswith('Deal: Acme Renewal (Discovery) | Value: $250,000')
        assert prompt.report.deal_found

    @pytest.mark.asyncio
    async def test_messages(self, acme_store):
        prompt = await DealCoach(acme_store).prepare(DEAL_ID, TENANT_ID, None, 'Hi')

        messages = prompt.messages()

        assert [m['role'] for m in messages] == ['system', 'user']
        assert messages[0]['content'] == prompt.system_prompt
        assert messages[1]['content'].startswith('Hi')

    @pytest.mark.asyncio
    async def test_degraded_context_still_prompts(self, acme_store):
        acme_store.fail('crm_companies')
        acme_store.fail(f'crm_companies/{COMPANY_ID}/notes')

        prompt = await DealCoach(acme_store).prepare(DEAL_ID, TENANT_ID, None, 'company update?')

        assert prompt.report.degraded
        assert '- Company: Unknown Company (Unknown Industry)' in prompt.system_prompt
        assert 'Relevant company context' not in prompt.user_message
        assert prompt.to_dict()['report']['failure_count'] == 2

    @pytest.mark.asyncio
    async def test_uses_injected_aggregator(self):
        aggregator = AsyncMock(spec=ContextAggregator)
        aggregator.aggregate = AsyncMock(
            return_value=AggregationResult(
                context=EnhancedDealContext(),
                report=AggregationReport(deal_id='d1', tenant_id='t1'),
            )
        )

        prompt = await DealCoach(aggregator=aggregator, insight_char_budget=10).prepare(
            'd1', 't1', 'u1', 'hello'
        )

        aggregator.aggregate.assert_awaited_once_with('d1', 't1', 'u1')
        assert prompt.recommendations == (
            'PERSONALIZED RECOMMENDATIONS: Focus on building relationships and understanding needs'
        )
        assert prompt.user_message == 'hello'

    def test_requires_store_or_aggregator(self):
        with pytest.raises(ValueError):
            DealCoach()
