"""AI Prompts Module"""

from app.ai.prompts.chat_prompts import (
    RESEARCH_ASSISTANT_PROMPT,
    PROTOCOL_EXPERT_PROMPT,
    FOCUS_AREAS,
    build_system_prompt,
    build_protocol_prompt,
    build_research_prompt,
)

__all__ = [
    "RESEARCH_ASSISTANT_PROMPT",
    "PROTOCOL_EXPERT_PROMPT",
    "FOCUS_AREAS",
    "build_system_prompt",
    "build_protocol_prompt",
    "build_research_prompt",
]
