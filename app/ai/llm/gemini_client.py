"""
Google Gemini Completion Client (google-genai SDK)

Adapts the Gemini API into the two call shapes the conversation store uses:
- create_chat_completion: one awaited call returning content and token usage
- create_streaming_chat_completion: calls `on_chunk(text)` for every chunk
  and returns once the stream is exhausted

No retries or backoff are layered on top of the SDK.
"""

import logging
from typing import Callable, List, Optional, Sequence, Union, Dict

from google import genai
from google.genai import types

from app.ai.prompts.chat_prompts import (
    RESEARCH_ASSISTANT_PROMPT,
    PROTOCOL_EXPERT_PROMPT,
    build_protocol_prompt,
    build_research_prompt,
)
from app.core.config import settings
from app.schemas.completion import (
    ChatMessage,
    CompletionOptions,
    CompletionResult,
    CompletionUsage,
)

logger = logging.getLogger(__name__)

MessageLike = Union[ChatMessage, Dict[str, str]]


# ============================================================
# MESSAGE FORMATTING
# ============================================================

def format_messages_for_gemini(messages: Sequence[MessageLike]) -> List[types.Content]:
    """
    Format messages for Gemini API.

    Args:
        messages: ChatMessage objects or {"role": ..., "content": ...} dicts

    Returns:
        List of Content objects for Gemini
    """
    contents = []

    for msg in messages:
        if isinstance(msg, ChatMessage):
            role, content = msg.role, msg.content
        else:
            role, content = msg["role"], msg["content"]

        # Convert roles: assistant -> model, system -> user context
        if role == "assistant":
            role = "model"
        elif role == "system":
            role = "user"
            content = f"[Context]\n{content}"

        contents.append(
            types.Content(
                role=role,
                parts=[types.Part(text=content)]
            )
        )

    return contents


def extract_usage(response) -> CompletionUsage:
    """Map Gemini usage metadata onto prompt/completion/total counts."""
    usage = getattr(response, "usage_metadata", None)
    if not usage:
        return CompletionUsage()

    prompt_tokens = getattr(usage, "prompt_token_count", 0) or 0
    completion_tokens = getattr(usage, "candidates_token_count", 0) or 0
    total_tokens = getattr(usage, "total_token_count", 0) or (prompt_tokens + completion_tokens)

    return CompletionUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    )


# ============================================================
# CLIENT
# ============================================================

class GeminiCompletionClient:
    """
    Chat completions against Gemini.

    Args:
        api_key: Overrides GEMINI_API_KEY
        model: Overrides GEMINI_MODEL
        client: Pre-built genai.Client (tests pass a stub here)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[genai.Client] = None
    ):
        self.model = model or settings.GEMINI_MODEL

        if client is not None:
            self._client = client
            return

        api_key = api_key or settings.GEMINI_API_KEY
        if not api_key:
            raise ValueError(
                "GEMINI_API_KEY not set. "
                "Get your free key at https://aistudio.google.com/apikey"
            )

        self._client = genai.Client(api_key=api_key)
        logger.info(f"Gemini client initialized (model: {self.model})")

    def _build_config(
        self,
        options: Optional[CompletionOptions],
        system_prompt: Optional[str]
    ) -> types.GenerateContentConfig:
        options = options or CompletionOptions()
        return types.GenerateContentConfig(
            temperature=options.temperature if options.temperature is not None else settings.LLM_TEMPERATURE,
            max_output_tokens=options.max_tokens or settings.LLM_MAX_TOKENS,
            system_instruction=system_prompt,
        )

    # ============================================================
    # CHAT COMPLETION
    # ============================================================

    async def create_chat_completion(
        self,
        messages: Sequence[MessageLike],
        options: Optional[CompletionOptions] = None,
        system_prompt: Optional[str] = RESEARCH_ASSISTANT_PROMPT
    ) -> CompletionResult:
        """
        Get a chat completion (non-streaming).

        Returns:
            CompletionResult with content, token usage and model name
        """
        model = (options.model if options else None) or self.model
        config = self._build_config(options, system_prompt)

        try:
            response = await self._client.aio.models.generate_content(
                model=model,
                contents=format_messages_for_gemini(messages),
                config=config
            )
        except Exception as e:
            logger.error(
                f"Gemini API error: {e}",
                extra={"action": "chat_completion", "metadata": {"messages": len(messages), "model": model}}
            )
            raise

        return CompletionResult(
            content=response.text or "",
            usage=extract_usage(response),
            model=model,
        )

    async def create_streaming_chat_completion(
        self,
        messages: Sequence[MessageLike],
        on_chunk: Callable[[str], None],
        options: Optional[CompletionOptions] = None,
        system_prompt: Optional[str] = RESEARCH_ASSISTANT_PROMPT
    ) -> None:
        """
        Get a streaming chat completion.

        `on_chunk` is called synchronously, in order, once per non-empty
        text chunk. Returns when the stream ends; errors propagate.
        """
        model = (options.model if options else None) or self.model
        config = self._build_config(options, system_prompt)
        chunks = 0

        try:
            stream = await self._client.aio.models.generate_content_stream(
                model=model,
                contents=format_messages_for_gemini(messages),
                config=config
            )
            async for chunk in stream:
                text = chunk.text
                if text:
                    chunks += 1
                    on_chunk(text)
        except Exception as e:
            logger.error(
                f"Gemini streaming error after {chunks} chunks: {e}",
                extra={"action": "streaming_chat_completion", "metadata": {"messages": len(messages), "model": model}}
            )
            raise

        logger.debug(f"Stream finished ({chunks} chunks)")

    # ============================================================
    # RESEARCH HELPERS
    # ============================================================

    async def get_protocol_guidance(
        self,
        research_question: str,
        current_protocol: Optional[str] = None,
        focus_area: Optional[str] = None
    ) -> CompletionResult:
        """Guidance on a review protocol, optionally narrowed to one focus area."""
        prompt = build_protocol_prompt(research_question, current_protocol, focus_area)
        return await self.create_chat_completion(
            [ChatMessage(role="user", content=prompt)],
            CompletionOptions(temperature=0.3, max_tokens=1500),
            system_prompt=PROTOCOL_EXPERT_PROMPT
        )

    async def get_research_assistance(
        self,
        query: str,
        project_title: Optional[str] = None,
        current_stage: Optional[str] = None,
        relevant_documents: Optional[List[str]] = None
    ) -> CompletionResult:
        """One-off methodology question outside of a conversation."""
        prompt = build_research_prompt(query, project_title, current_stage, relevant_documents)
        return await self.create_chat_completion(
            [ChatMessage(role="user", content=prompt)],
            CompletionOptions(temperature=0.7, max_tokens=1200),
            system_prompt=RESEARCH_ASSISTANT_PROMPT
        )


# ============================================================
# SINGLETON
# ============================================================

_completion_client: Optional[GeminiCompletionClient] = None


def get_completion_client() -> GeminiCompletionClient:
    """Get or create the shared completion client."""
    global _completion_client

    if _completion_client is None:
        _completion_client = GeminiCompletionClient()

    return _completion_client
