"""
LLM Module

Language Model integrations for the research assistant.

Currently using Google Gemini.
"""

from app.ai.llm.gemini_client import (
    GeminiCompletionClient,
    format_messages_for_gemini,
    get_completion_client,
)

__all__ = [
    "GeminiCompletionClient",
    "format_messages_for_gemini",
    "get_completion_client",
]
