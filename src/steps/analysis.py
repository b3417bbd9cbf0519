"""
Analysis steps: one generic runner driven by a table of step descriptors.

Each descriptor names the result field a step produces and the fields of
earlier steps its prompt depends on. The orchestrator never knows prompt
content; it only walks ANALYSIS_STEPS in order.
"""

from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter, ValidationError

from state import (
    ANALYSIS_ORDER,
    AnalysisStepKind,
    InvalidInputError,
    PipelineState,
    StateUpdate,
    StepStatus,
)
from llm import LLMError, MalformedResponseError
from logging_utils import get_logger
from steps.common import Dependencies, coerce_text, format_context, format_schema
from steps.prompts import (
    LOCATION_NOT_SPECIFIED,
    NO_PRIOR_RESULTS,
    PROMPT_ANALYSIS_STEP,
    REFERENCE_SCHEMA,
    STEP_INSTRUCTIONS,
)
from steps.schemas import AcademicReference

logger = get_logger(__name__)


@dataclass(frozen=True)
class AnalysisStep:
    """Descriptor for one pipeline step."""
    kind: AnalysisStepKind
    field: str
    requires: tuple[str, ...] = ()
    is_list: bool = False

    def output_schema(self) -> dict[str, Any]:
        if self.is_list:
            return {self.field: [REFERENCE_SCHEMA]}
        return {self.field: "string"}


ANALYSIS_STEPS: tuple[AnalysisStep, ...] = (
    AnalysisStep(AnalysisStepKind.STRUCTURAL_SYSTEM, "suggestedStructuralSystem"),
    AnalysisStep(
        AnalysisStepKind.BUILDING_CODES, "applicableBuildingCodes",
        requires=("suggestedStructuralSystem",),
    ),
    AnalysisStep(
        AnalysisStepKind.EXECUTION_METHOD, "executionMethod",
        requires=("suggestedStructuralSystem", "applicableBuildingCodes"),
    ),
    AnalysisStep(
        AnalysisStepKind.POTENTIAL_CHALLENGES, "potentialChallenges",
        requires=("suggestedStructuralSystem", "executionMethod"),
    ),
    AnalysisStep(
        AnalysisStepKind.KEY_FOCUS_AREAS, "keyFocusAreas",
        requires=("suggestedStructuralSystem", "applicableBuildingCodes", "potentialChallenges"),
    ),
    AnalysisStep(
        AnalysisStepKind.ACADEMIC_REFERENCES, "academicReferences",
        requires=("suggestedStructuralSystem",),
        is_list=True,
    ),
)

STEPS_BY_KIND: dict[AnalysisStepKind, AnalysisStep] = {step.kind: step for step in ANALYSIS_STEPS}

RESULT_FIELDS: tuple[str, ...] = tuple(step.field for step in ANALYSIS_STEPS)

_references_adapter = TypeAdapter(list[AcademicReference])


def get_step(kind: AnalysisStepKind | str) -> AnalysisStep:
    """
    Look up a step descriptor by kind or by its tag string.

    Raises:
        InvalidInputError: If the tag is not one of the analysis focuses.
    """
    try:
        return STEPS_BY_KIND[AnalysisStepKind(kind)]
    except ValueError:
        valid = ", ".join(k.value for k in ANALYSIS_ORDER)
        raise InvalidInputError(f"Invalid analysis focus '{kind}'. Expected one of: {valid}")


def analyze_focus(
    description: str,
    location: str,
    focus: AnalysisStepKind | str,
    context: dict[str, Any],
    deps: Dependencies,
) -> dict[str, Any]:
    """
    Run the single-step analysis call for one focus.

    Args:
        description: Project description.
        location: Project location ("" lets the model infer it).
        focus: Which facet to produce.
        context: Results of earlier steps.
        deps: Dependencies (config, llm).

    Returns:
        A partial result holding exactly the field for `focus`.

    Raises:
        InvalidInputError: If the description is empty, the focus is unknown,
            or context lacks a field this step depends on.
        LLMError: If the upstream call fails.
        MalformedResponseError: If the reply lacks a usable value for the field.
    """
    step = get_step(focus)

    if not description or not description.strip():
        raise InvalidInputError("Project description is required")

    missing = [f for f in step.requires if not context.get(f)]
    if missing:
        raise InvalidInputError(
            f"Step '{step.kind.value}' needs earlier results: {', '.join(missing)}"
        )

    prompt = PROMPT_ANALYSIS_STEP.format(
        language=deps.config.response_language,
        description=description,
        location=location or LOCATION_NOT_SPECIFIED,
        context=format_context(context) if context else NO_PRIOR_RESULTS,
        field=step.field,
        instruction=STEP_INSTRUCTIONS[step.kind.value],
        schema=format_schema(step.output_schema()),
    )

    data = deps.llm.ask_json(prompt)
    return {step.field: _extract_value(step, data)}


def _extract_value(step: AnalysisStep, data: dict[str, Any]) -> Any:
    """Pull and validate the step's field out of a parsed reply."""
    raw = data.get(step.field)

    if step.is_list:
        if not isinstance(raw, list) or not raw:
            raise MalformedResponseError(f"Response is missing a list for '{step.field}'")
        try:
            references = _references_adapter.validate_python(raw)
        except ValidationError as e:
            raise MalformedResponseError(
                f"Invalid entries in '{step.field}': {e.error_count()} validation error(s)"
            ) from e
        return [ref.model_dump(mode="json", by_alias=True) for ref in references]

    value = coerce_text(raw)
    if not value:
        raise MalformedResponseError(f"Response is missing a value for '{step.field}'")
    return value


def run_analysis_step(state: PipelineState, deps: Dependencies) -> StateUpdate:
    """
    Execute the step currently marked LOADING.

    On success the step's field is merged into the result, the step becomes
    COMPLETE and the next step (if any) becomes LOADING. On failure the
    status is left as it was and the error is recorded.

    Returns:
        StateUpdate with result/status on success, error/failed_step on failure.
    """
    kind = state.current_step()
    if kind is None:
        return {}

    step = STEPS_BY_KIND[kind]
    logger.debug(f"Running analysis step {kind.value} -> {step.field}")

    try:
        partial = analyze_focus(
            description=state.description,
            location=state.location,
            focus=kind,
            context=state.result,
            deps=deps,
        )
    except (LLMError, InvalidInputError) as e:
        logger.error(f"Analysis step {kind.value} failed: {e}")
        return {"error": str(e) or e.__class__.__name__, "failed_step": kind}

    status = dict(state.status)
    status[kind] = StepStatus.COMPLETE
    following = state.next_step_after(kind)
    if following is not None:
        status[following] = StepStatus.LOADING

    return {
        "result": {**state.result, **partial},
        "status": status,
        "error": None,
        "failed_step": None,
    }
