"""
Coach prompt assembly.
"""

from .coach_prompts import (
    DEFAULT_RECOMMENDATIONS,
    DEFAULT_TONE_INSTRUCTIONS,
    KEYWORD_RULES,
    KeywordRule,
    enhance_user_prompt,
    generate_context_summary,
    generate_enhanced_system_prompt,
    generate_personalized_recommendations,
    generate_tone_aware_instructions,
    trim_insights,
)

__all__ = [
    'DEFAULT_RECOMMENDATIONS',
    'DEFAULT_TONE_INSTRUCTIONS',
    'KEYWORD_RULES',
    'KeywordRule',
    'enhance_user_prompt',
    'generate_context_summary',
    'generate_enhanced_system_prompt',
    'generate_personalized_recommendations',
    'generate_tone_aware_instructions',
    'trim_insights',
]
