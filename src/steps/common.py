"""
Common utilities shared across step modules.

Contains:
- Dependencies dataclass for dependency injection
- Shared helpers for turning model replies into validated values
"""

import json
from dataclasses import dataclass
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from config import AppConfig
from llm import LLMClient, MalformedResponseError

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class Dependencies:
    """
    All external dependencies for step functions.

    Injected once at startup, passed to all steps.
    Makes testing easy - just mock these.
    """
    config: AppConfig
    llm: LLMClient


def validate_contract(model: type[ModelT], data: Any) -> ModelT:
    """
    Validate a parsed model reply against its response model.

    Raises:
        MalformedResponseError: If the reply doesn't match the contract.
    """
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            f"Response does not match {model.__name__}: {e.error_count()} validation error(s)"
        ) from e


def coerce_text(value: Any) -> str:
    """
    Normalize a text field from a model reply.

    Models asked for a string sometimes answer with a list of bullet points;
    those are joined one per line. Anything else non-string yields "".
    """
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list) and value and all(isinstance(v, str) for v in value):
        return "\n".join(f"- {v.strip()}" for v in value)
    return ""


def format_context(result: dict[str, Any]) -> str:
    """Render accumulated results for inclusion in a prompt."""
    return json.dumps(result, ensure_ascii=False, indent=2)


def format_schema(schema: Any) -> str:
    """Render an output schema for inclusion in a prompt."""
    return json.dumps(schema, ensure_ascii=False, indent=2)
