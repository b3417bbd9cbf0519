"""
Workflow: Sequential pipeline over the fixed analysis steps.

The pipeline walks AnalysisStepKind in declaration order, one external call
at a time, threading accumulated results forward as context.

Design principles:
- Step order is data (ANALYSIS_ORDER / ANALYSIS_STEPS), not implicit in code
- run_next_step is pure: state in, new state out
- The runner's only side channel is the progress callback
- A failed step halts the run; nothing is retried
"""

from typing import Any, Callable

from state import ANALYSIS_ORDER, AnalysisStepKind, PipelineState, StateUpdate, StepStatus, start
from history import HistoryEntry, HistoryStore
from logging_utils import get_logger, LoggerAdapter
from steps import Dependencies, run_analysis_step


# Type alias for step functions
StepFunction = Callable[[PipelineState, Dependencies], StateUpdate]

# Called after every completed step with (result so far, status so far)
ProgressCallback = Callable[[dict[str, Any], dict[AnalysisStepKind, StepStatus]], None]


class PipelineFailedError(Exception):
    """A pipeline step failed; `state` is the last known state of the run."""

    def __init__(self, state: PipelineState):
        step = state.failed_step.value if state.failed_step else "unknown"
        super().__init__(f"Analysis step '{step}' failed: {state.error}")
        self.state = state


def run_next_step(
    state: PipelineState,
    deps: Dependencies,
    step_fn: StepFunction = run_analysis_step,
) -> PipelineState:
    """
    Execute the step currently marked LOADING and return the new state.

    Terminal and failed states are returned unchanged.
    """
    if state.should_stop():
        return state
    return state.apply_update(step_fn(state, deps))


class PipelineRunner:
    """
    Drives a pipeline run to its terminal state or first failure.

    Usage:
        deps = Dependencies(config=config, llm=llm)
        runner = PipelineRunner(deps, on_progress=render)

        state = start("10-story residential tower", "Riyadh")
        final_state = runner.run(state)
    """

    def __init__(
        self,
        deps: Dependencies,
        verbose: bool = True,
        on_progress: ProgressCallback | None = None,
        step_fn: StepFunction = run_analysis_step,
    ):
        """
        Initialize pipeline runner.

        Args:
            deps: External dependencies (config, LLM).
            verbose: Log step transitions.
            on_progress: Called after every completed step.
            step_fn: Step implementation (tests substitute their own).
        """
        self.deps = deps
        self.on_progress = on_progress
        self.step_fn = step_fn
        self.log = LoggerAdapter(get_logger(__name__), verbose=verbose)

    def run(self, state: PipelineState) -> PipelineState:
        """
        Execute steps until every one is complete or one fails.

        Args:
            state: Initial (or partially complete) pipeline state.

        Returns:
            Final pipeline state. On failure the failed step is still LOADING
            and state.error describes the failure.
        """
        total = len(ANALYSIS_ORDER)

        while not state.should_stop():
            current = state.current_step()
            position = ANALYSIS_ORDER.index(current) + 1
            self.log(f"Step {position}/{total}: {current.value}")

            previous = state
            state = run_next_step(state, self.deps, self.step_fn)

            if state.failed:
                self.log.error(f"Pipeline halted at {current.value}: {state.error}")
                break

            if state.status == previous.status:
                raise RuntimeError(f"Step {current.value} returned without advancing the pipeline")

            if self.on_progress is not None:
                self.on_progress(dict(state.result), dict(state.status))

        if state.is_complete:
            self.log("Analysis completed successfully")

        return state


def run_pipeline(
    state: PipelineState,
    deps: Dependencies,
    verbose: bool = True,
    on_progress: ProgressCallback | None = None,
) -> PipelineState:
    """
    Convenience function to run the pipeline.

    Args:
        state: Initial pipeline state (see state.start).
        deps: External dependencies.
        verbose: Log progress.
        on_progress: Called after every completed step.

    Returns:
        Final pipeline state.
    """
    runner = PipelineRunner(deps, verbose=verbose, on_progress=on_progress)
    return runner.run(state)


def analyze_project(
    description: str,
    location: str,
    deps: Dependencies,
    history: HistoryStore | None = None,
    on_progress: ProgressCallback | None = None,
    verbose: bool = True,
) -> tuple[PipelineState, HistoryEntry | None]:
    """
    Run a full analysis and record it in history.

    Returns:
        (final state, the appended history entry or None when no store is given).

    Raises:
        InvalidInputError: If the description is empty.
        PipelineFailedError: If a step fails. Nothing is added to history.
    """
    state = run_pipeline(start(description, location), deps, verbose=verbose, on_progress=on_progress)

    if state.failed:
        raise PipelineFailedError(state)

    entry = None
    if history is not None:
        entry = history.append(HistoryEntry.from_pipeline(state))
    return state, entry
