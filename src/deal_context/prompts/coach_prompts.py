"""
Prompt assembly for the deal coach.

Pure functions over an EnhancedDealContext (and its ContextInsights):
- generate_enhanced_system_prompt: context summary + key insights + instructions
- enhance_user_prompt: keyword-triggered context appended to a user message
- generate_context_summary: one pipe-delimited summary line
- generate_tone_aware_instructions: tone directives, with a fixed default
- generate_personalized_recommendations: rule-based bullets, with a fixed default
"""

from dataclasses import dataclass

from ..config import config
from ..models.context import ContextInsights, EnhancedDealContext
from ..pipeline.insights import generate_context_insights

DEFAULT_TONE_INSTRUCTIONS = 'TONE INSTRUCTIONS: Use professional but warm tone'
DEFAULT_RECOMMENDATIONS = (
    'PERSONALIZED RECOMMENDATIONS: Focus on building relationships and understanding needs'
)


# =============================================================================
# Keyword rules for user prompt enhancement
# =============================================================================


@dataclass(frozen=True)
class KeywordRule:
    """Append one insight category when any keyword occurs in the message."""

    keywords: tuple[str, ...]
    category: str
    label: str

    def matches(self, message: str) -> bool:
        # Plain substring containment: "personal" matches "person"
        lowered = message.lower()
        return any(keyword in lowered for keyword in self.keywords)


KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(('contact', 'person'), 'contact', 'Relevant contact context'),
    KeywordRule(('company', 'business'), 'company', 'Relevant company context'),
    KeywordRule(('recent', 'activity'), 'activity', 'Relevant activity context'),
)


# =============================================================================
# System prompt
# =============================================================================


SYSTEM_PROMPT_TEMPLATE = """You are the Deal Coach AI, an expert sales advisor with comprehensive context about this deal and all associated entities.

CONTEXT SUMMARY:
- Deal: {deal_name} ({deal_stage})
- Company: {company_name} ({company_industry})
- Contacts: {contact_count} contacts ({contact_names})
- Salespeople: {salesperson_count} salespeople ({salesperson_names})
- Recent Activity: {activity_count} activities, {email_count} emails, {task_count} tasks, {note_count} notes

KEY INSIGHTS:
{insights}

INSTRUCTIONS:
1. Use ALL available context to provide personalized, intelligent advice
2. Consider each contact's role, personality, and communication preferences
3. Factor in company tone settings and recent activity
4. Reference specific notes, emails, and tasks when relevant
5. Suggest actions based on the salesperson's strengths and preferences
6. Consider the deal stage and historical success patterns
7. Provide actionable, specific recommendations
8. Use the tone settings to match communication style
9. Reference AI insights when making strategic suggestions
10. Consider the unique dynamics of this specific deal

RESPONSE FORMAT:
- Be conversational and helpful
- Reference specific context when making suggestions
- Provide clear next steps
- Consider the unique dynamics of this deal
- Use the appropriate tone based on settings
- Be specific about which contacts to engage and how

IMPORTANT: Always consider the personality and preferences of each contact when making recommendations."""


def trim_insights(insights: ContextInsights, char_budget: int) -> ContextInsights:
    """
    Cap the rendered insight block at ``char_budget`` characters.

    Entries are dropped oldest-first: the trailing entry of the longest
    category goes first (later category on ties). A budget of 0 or less
    means no cap.
    """
    trimmed = ContextInsights(**insights.to_dict())
    if char_budget <= 0:
        return trimmed

    categories = list(ContextInsights.CATEGORIES)
    while len('\n'.join(trimmed.ordered())) > char_budget:
        lengths = [(len(getattr(trimmed, c)), i) for i, c in enumerate(categories)]
        longest, position = max(lengths)
        if longest == 0:
            break
        getattr(trimmed, categories[position]).pop()

    return trimmed


def generate_enhanced_system_prompt(
    context: EnhancedDealContext,
    insights: ContextInsights | None = None,
    insight_char_budget: int | None = None,
) -> str:
    """
    Render the coach system prompt.

    Args:
        context: Aggregated deal context
        insights: Pre-computed insights (extracted from context when omitted)
        insight_char_budget: Cap for the KEY INSIGHTS block
                             (defaults to config.INSIGHT_CHAR_BUDGET; 0 = no cap)

    Returns:
        The system prompt string
    """
    insights = insights or generate_context_insights(context)
    budget = config.INSIGHT_CHAR_BUDGET if insight_char_budget is None else insight_char_budget
    insights = trim_insights(insights, budget)

    deal = context.deal
    company = context.company.company if context.company else None

    contact_names = ', '.join(c.name for c in context.contacts if c.name)
    salesperson_names = ', '.join(s.name for s in context.salespeople if s.name)

    return SYSTEM_PROMPT_TEMPLATE.format(
        deal_name=(deal.name if deal else None) or 'Unknown Deal',
        deal_stage=(deal.stage if deal else None) or 'Unknown Stage',
        company_name=(company.name if company else None) or 'Unknown Company',
        company_industry=(company.industry if company else None) or 'Unknown Industry',
        contact_count=len(context.contacts),
        contact_names=contact_names,
        salesperson_count=len(context.salespeople),
        salesperson_names=salesperson_names,
        activity_count=len(context.activities),
        email_count=len(context.communications),
        task_count=len(context.tasks),
        note_count=len(context.notes),
        insights='\n'.join(insights.ordered()),
    )


# =============================================================================
# User prompt enhancement
# =============================================================================


def enhance_user_prompt(
    user_message: str,
    context: EnhancedDealContext,
    insights: ContextInsights | None = None,
    rules: tuple[KeywordRule, ...] = KEYWORD_RULES,
) -> str:
    """
    Append category context blocks whose keywords occur in the message.
    AI insights are always appended when any exist.
    """
    insights = insights or generate_context_insights(context)
    enhanced = user_message

    for rule in rules:
        if not rule.matches(user_message):
            continue
        lines = getattr(insights, rule.category)
        if lines:
            enhanced += f'\n\n{rule.label}: ' + '; '.join(lines)

    if insights.ai:
        enhanced += '\n\nAI insights: ' + '; '.join(insights.ai)

    return enhanced


# =============================================================================
# Summary, tone and recommendations
# =============================================================================


def _format_currency(value: float) -> str:
    if float(value).is_integer():
        return f'${int(value):,}'
    return f'${value:,.2f}'


def generate_context_summary(context: EnhancedDealContext) -> str:
    """Single pipe-delimited summary line."""
    parts: list[str] = []

    deal = context.deal
    if deal is not None:
        if deal.name:
            stage = f' ({deal.stage})' if deal.stage else ''
            parts.append(f'Deal: {deal.name}{stage}')
        elif deal.stage:
            parts.append(f'Stage: {deal.stage}')
        if deal.estimated_revenue:
            parts.append(f'Value: {_format_currency(deal.estimated_revenue)}')

    company = context.company.company if context.company else None
    if company is not None and company.name:
        parts.append(f'Company: {company.name} ({company.industry or "Unknown industry"})')

    contact_roles = [
        f'{c.name} ({c.deal_role or "Unknown role"})' for c in context.contacts if c.name
    ]
    if contact_roles:
        parts.append(f'Contacts: {", ".join(contact_roles)}')

    salesperson_names = [s.name for s in context.salespeople if s.name]
    if salesperson_names:
        parts.append(f'Salespeople: {", ".join(salesperson_names)}')

    activity_counts = [
        f'{count} {label}'
        for count, label in (
            (len(context.activities), 'activities'),
            (len(context.communications), 'emails'),
            (len(context.tasks), 'tasks'),
            (len(context.notes), 'notes'),
        )
        if count > 0
    ]
    if activity_counts:
        parts.append(f'Recent activity: {", ".join(activity_counts)}')

    return ' | '.join(parts)


def generate_tone_aware_instructions(context: EnhancedDealContext) -> str:
    """Deal tone, then company tone, then each contact with an explicit tone."""
    instructions: list[str] = []

    if context.tone_settings.tone:
        instructions.append(f'Use {context.tone_settings.tone} tone for this deal')

    if context.company is not None and context.company.tone_settings.tone:
        instructions.append(f'Company prefers {context.company.tone_settings.tone} communication')

    for contact in context.contacts:
        if contact.tone_settings.tone and contact.name:
            instructions.append(f'{contact.name} prefers {contact.tone_settings.tone} communication')

    if instructions:
        return f'TONE INSTRUCTIONS: {"; ".join(instructions)}'
    return DEFAULT_TONE_INSTRUCTIONS


def generate_personalized_recommendations(context: EnhancedDealContext) -> str:
    """One bullet per matched heuristic; a fixed default when none match."""
    recommendations: list[str] = []

    for contact in context.contacts:
        name = contact.name
        if not name:
            continue
        if contact.deal_role == 'decision_maker':
            recommendations.append(f'Focus on {name} as the primary decision maker')
        if contact.personality == 'analytical':
            recommendations.append(f'Provide data and metrics when communicating with {name}')
        if contact.preferences.contact_method == 'email':
            recommendations.append(f'Prefer email communication with {name}')

    for salesperson in context.salespeople:
        strengths = salesperson.performance.strengths_text if salesperson.performance else None
        if strengths and salesperson.name:
            recommendations.append(f"Leverage {salesperson.name}'s strengths: {strengths}")

    if context.activities:
        latest_type = context.activities[0].type
        if latest_type == 'email_sent':
            recommendations.append('Follow up on the recent email communication')
        elif latest_type == 'meeting_scheduled':
            recommendations.append('Prepare for the upcoming meeting')

    if recommendations:
        return f'PERSONALIZED RECOMMENDATIONS: {"; ".join(recommendations)}'
    return DEFAULT_RECOMMENDATIONS
