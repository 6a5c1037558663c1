"""
Chat Prompts

System prompts and templates for the research assistant.

Focus areas:
-----------
Protocol guidance can be narrowed to one part of the review protocol
(PICO, SPIDER, inclusion, exclusion, search strategy).
"""

from typing import Optional


RESEARCH_ASSISTANT_PROMPT = """You are an AI research assistant specializing in systematic literature reviews and evidence synthesis.
You help researchers with methodology, analysis, and best practices.

Provide accurate, evidence-based guidance while being helpful and encouraging.
When discussing methodology, reference relevant guidelines (PRISMA, Cochrane, JBI) when appropriate."""


PROTOCOL_EXPERT_PROMPT = """You are a research methodology expert specializing in systematic literature reviews.
Help researchers create comprehensive research protocols including PICO/SPIDER frameworks, inclusion/exclusion criteria, and search strategies.

Provide specific, actionable guidance that follows established systematic review guidelines (PRISMA, Cochrane).
Be thorough but concise, and always explain the rationale behind recommendations."""


FOCUS_AREAS = {
    "pico": "Help me develop the PICO framework (Population, Intervention, Comparison, Outcome)",
    "spider": "Help me develop the SPIDER framework (Sample, Phenomenon of Interest, Design, Evaluation, Research type)",
    "inclusion": "Help me define clear inclusion criteria",
    "exclusion": "Help me define clear exclusion criteria",
    "search_strategy": "Help me develop an effective search strategy including keywords and databases",
}


def build_system_prompt(project_context: Optional[str] = None) -> str:
    """
    Build the system prompt for conversation chat.

    Args:
        project_context: Free text stored with the conversation, if any

    Returns:
        System prompt string
    """
    prompt = RESEARCH_ASSISTANT_PROMPT

    if project_context:
        prompt += f"""

Context supplied by the researcher for this conversation:
{project_context}"""

    return prompt


def build_protocol_prompt(
    research_question: str,
    current_protocol: Optional[str] = None,
    focus_area: Optional[str] = None
) -> str:
    """
    Build the user prompt for protocol guidance.

    Raises:
        ValueError: unknown focus area
    """
    prompt = f'Research Question: "{research_question}"'

    if current_protocol:
        prompt += f"\n\nCurrent Protocol:\n{current_protocol}"

    if focus_area:
        if focus_area not in FOCUS_AREAS:
            raise ValueError(f"Unknown focus area: {focus_area}")
        prompt += f"\n\nSpecific guidance needed: {FOCUS_AREAS[focus_area]}"

    return prompt


def build_research_prompt(
    query: str,
    project_title: Optional[str] = None,
    current_stage: Optional[str] = None,
    relevant_documents: Optional[list] = None
) -> str:
    """Wrap a free-form question with what we know about the project."""
    prompt = query

    if project_title:
        prompt = f'Project: "{project_title}"\n\n{prompt}'

    if current_stage:
        prompt += f"\n\nCurrent stage: {current_stage}"

    if relevant_documents:
        prompt += f"\n\nRelevant documents: {', '.join(relevant_documents)}"

    return prompt
