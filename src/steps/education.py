"""
Educational support: explain an engineering concept at a chosen depth.
"""

from state import InvalidInputError
from steps.common import Dependencies, format_schema, validate_contract
from steps.prompts import EXPLANATION_SCHEMA, PROMPT_EXPLAIN_CONCEPT
from steps.schemas import ConceptExplanation


def explain_concept(topic: str, level: str, goal: str, deps: Dependencies) -> ConceptExplanation:
    """
    Explain a topic with references and graduation project ideas.

    Raises:
        InvalidInputError: On empty topic/goal or unknown level.
        LLMError / MalformedResponseError: On upstream failure.
    """
    if not topic or not topic.strip():
        raise InvalidInputError("Topic is required")
    if not goal or not goal.strip():
        raise InvalidInputError("Goal is required")

    levels = deps.config.engineering.explanation_levels
    if level not in levels:
        raise InvalidInputError(
            f"Invalid level '{level}'. Expected one of: {deps.config.engineering.explanation_levels_str()}"
        )

    prompt = PROMPT_EXPLAIN_CONCEPT.format(
        language=deps.config.response_language,
        topic=topic.strip(),
        level=level,
        goal=goal.strip(),
        schema=format_schema(EXPLANATION_SCHEMA),
    )

    data = deps.llm.ask_json(prompt)
    return validate_contract(ConceptExplanation, data)
