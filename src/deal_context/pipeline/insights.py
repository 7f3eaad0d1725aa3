"""
Deterministic insight extraction.

Walks an EnhancedDealContext and produces short sentences in six
categories. Each sentence is derived from the first (most recent) entry
of its source list. Absent data produces no sentence; nothing is filled
in with placeholder text except the documented industry/title fallbacks.

Routing: per-entity AI inferences land in the AI category, contact email
subjects and company activity land in the activity category.
"""

from ..models.context import (
    CompanyContext,
    ContactContext,
    ContextInsights,
    EnhancedDealContext,
    SalespersonContext,
)
from ..models.records import AIInference, ToneSettings


def _latest_inference(inferences: list[AIInference]) -> str | None:
    return inferences[0].text if inferences else None


def _tone_of(settings: ToneSettings | None) -> str | None:
    return settings.tone if settings else None


class InsightExtractor:
    """Translates a deal context into categorized insight sentences."""

    def extract(self, context: EnhancedDealContext) -> ContextInsights:
        insights = ContextInsights()

        if context.company is not None:
            self._company(context.company, insights)

        for index, contact in enumerate(context.contacts, start=1):
            self._contact(index, contact, insights)

        for index, salesperson in enumerate(context.salespeople, start=1):
            self._salesperson(index, salesperson, insights)

        self._deal_activity(context, insights)
        self._tone(context, insights)

        deal_inference = _latest_inference(context.ai_inferences)
        if deal_inference:
            insights.ai.append(f'Deal AI Insight: {deal_inference}')

        return insights

    def _company(self, company_context: CompanyContext, insights: ContextInsights) -> None:
        company = company_context.company
        if company is None:
            return

        if company.name:
            insights.company.append(
                f'Company: {company.name} ({company.industry or "Unknown industry"})'
            )

        inference = _latest_inference(company_context.ai_inferences)
        if inference:
            insights.ai.append(f'Company AI Insight: {inference}')

        if company_context.notes and company_context.notes[0].content:
            insights.company.append(f'Latest company note: {company_context.notes[0].content}')

        if company_context.recent_activity and company_context.recent_activity[0].label:
            insights.activity.append(
                f'Recent company activity: {company_context.recent_activity[0].label}'
            )

    def _contact(self, index: int, contact_context: ContactContext, insights: ContextInsights) -> None:
        contact = contact_context.contact
        name = contact_context.name
        if contact is None or not name:
            return

        insights.contact.append(f'Contact {index}: {name} ({contact.title or "No title"})')

        if contact_context.deal_role:
            insights.contact.append(f'{name} is a {contact_context.deal_role} in this deal')

        if contact_context.personality:
            insights.contact.append(f'{name} has a {contact_context.personality} personality')

        style = contact_context.preferences.communication_style
        if style:
            insights.contact.append(f'{name} prefers {style} communication')

        inference = _latest_inference(contact_context.ai_inferences)
        if inference:
            insights.ai.append(f'{name} AI Insight: {inference}')

        if contact_context.notes and contact_context.notes[0].content:
            insights.contact.append(f'Latest note about {name}: {contact_context.notes[0].content}')

        if contact_context.communications and contact_context.communications[0].subject:
            insights.activity.append(
                f'Recent email to {name}: {contact_context.communications[0].subject}'
            )

    def _salesperson(
        self,
        index: int,
        salesperson_context: SalespersonContext,
        insights: ContextInsights,
    ) -> None:
        name = salesperson_context.name
        if salesperson_context.salesperson is None or not name:
            return

        insights.salesperson.append(f'Salesperson {index}: {name}')

        performance = salesperson_context.performance
        if performance is not None and performance.summary:
            insights.salesperson.append(f'{name} performance: {performance.summary}')

        inference = _latest_inference(salesperson_context.ai_inferences)
        if inference:
            insights.ai.append(f'{name} AI Insight: {inference}')

    def _deal_activity(self, context: EnhancedDealContext, insights: ContextInsights) -> None:
        if context.activities and context.activities[0].label:
            insights.activity.append(f'Latest deal activity: {context.activities[0].label}')

        if context.communications and context.communications[0].subject:
            insights.activity.append(f'Latest deal email: {context.communications[0].subject}')

        if context.tasks and context.tasks[0].title:
            task = context.tasks[0]
            status = f' ({task.status})' if task.status else ''
            insights.activity.append(f'Latest deal task: {task.title}{status}')

    def _tone(self, context: EnhancedDealContext, insights: ContextInsights) -> None:
        deal_tone = _tone_of(context.tone_settings)
        if deal_tone:
            insights.tone.append(f'Deal tone setting: {deal_tone}')

        company_tone = _tone_of(context.company.tone_settings) if context.company else None
        if company_tone:
            insights.tone.append(f'Company tone setting: {company_tone}')


def generate_context_insights(context: EnhancedDealContext) -> ContextInsights:
    """Extract the six insight categories from a context."""
    return InsightExtractor().extract(context)
