"""
PipelineState: Single source of truth for one analysis pipeline run.

Explicit state container passed through all step functions, replacing the
module-level "current analysis" a UI would otherwise keep.

Design:
- PipelineState is frozen (immutable) to prevent accidental mutation
- All updates create new instances via apply_update()
- Step functions receive a state and return what changed
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, TypedDict


class InvalidInputError(ValueError):
    """Input rejected before any external call was made."""


class AnalysisStepKind(str, Enum):
    """
    One facet of the preliminary project analysis.

    Declaration order is the pipeline order: later steps receive the
    fields produced by earlier ones as context.
    """
    STRUCTURAL_SYSTEM = "structural-system"
    BUILDING_CODES = "building-codes"
    EXECUTION_METHOD = "execution-method"
    POTENTIAL_CHALLENGES = "potential-challenges"
    KEY_FOCUS_AREAS = "key-focus-areas"
    ACADEMIC_REFERENCES = "academic-references"


class StepStatus(str, Enum):
    """Progress of a single analysis step."""
    PENDING = "pending"
    LOADING = "loading"
    COMPLETE = "complete"


ANALYSIS_ORDER: tuple[AnalysisStepKind, ...] = tuple(AnalysisStepKind)


class StateUpdate(TypedDict, total=False):
    """
    Partial state update returned by step functions.

    Step functions return what changed rather than mutating anything.
    """
    result: dict[str, Any]
    status: dict[AnalysisStepKind, StepStatus]
    error: str | None
    failed_step: AnalysisStepKind | None


def initial_status() -> dict[AnalysisStepKind, StepStatus]:
    """First step loading, all others pending."""
    return {
        kind: StepStatus.LOADING if i == 0 else StepStatus.PENDING
        for i, kind in enumerate(ANALYSIS_ORDER)
    }


@dataclass(frozen=True)
class PipelineState:
    """
    Immutable state of a single pipeline run.

    - description/location are fixed when the run starts
    - result accumulates one field per completed step
    - status holds one StepStatus per AnalysisStepKind
    - error/failed_step are set when a step's external call fails; the failed
      step keeps its LOADING status and is never auto-advanced
    """

    description: str = ""
    location: str = ""
    result: dict[str, Any] = field(default_factory=dict)
    status: dict[AnalysisStepKind, StepStatus] = field(default_factory=initial_status)
    error: str | None = None
    failed_step: AnalysisStepKind | None = None

    def apply_update(self, update: StateUpdate) -> "PipelineState":
        """
        Apply a partial update to the state.

        Creates a new PipelineState instance with updated values.

        Args:
            update: Dictionary of field names to new values.

        Returns:
            New PipelineState with updates applied.

        Raises:
            KeyError: If the update names a field PipelineState doesn't have.
        """
        unknown = [key for key in update if key not in self.__dataclass_fields__]
        if unknown:
            raise KeyError(f"Unknown state fields: {', '.join(unknown)}")
        return replace(self, **update) if update else self

    def current_step(self) -> AnalysisStepKind | None:
        """The step currently marked LOADING, if any."""
        for kind in ANALYSIS_ORDER:
            if self.status.get(kind) == StepStatus.LOADING:
                return kind
        return None

    def next_step_after(self, kind: AnalysisStepKind) -> AnalysisStepKind | None:
        """The step that follows `kind` in pipeline order."""
        index = ANALYSIS_ORDER.index(kind)
        if index + 1 < len(ANALYSIS_ORDER):
            return ANALYSIS_ORDER[index + 1]
        return None

    def loading_count(self) -> int:
        return sum(1 for s in self.status.values() if s == StepStatus.LOADING)

    def completed_steps(self) -> list[AnalysisStepKind]:
        return [k for k in ANALYSIS_ORDER if self.status.get(k) == StepStatus.COMPLETE]

    @property
    def is_complete(self) -> bool:
        """Terminal condition: every step complete."""
        return all(self.status.get(k) == StepStatus.COMPLETE for k in ANALYSIS_ORDER)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def should_stop(self) -> bool:
        """Check if the driving loop should stop."""
        return self.is_complete or self.failed or self.current_step() is None


def start(description: str, location: str = "") -> PipelineState:
    """
    Create the initial state for a new pipeline run.

    Minimum-length policy belongs to the caller; an empty description is
    always refused here.

    Raises:
        InvalidInputError: If description is empty or whitespace.
    """
    if not description or not description.strip():
        raise InvalidInputError("Project description is required")

    return PipelineState(
        description=description.strip(),
        location=(location or "").strip(),
    )
