"""
Design steps: conceptual design and simplified structural simulation.

Both run after a preliminary analysis and produce sub-results that can be
attached to a history entry.
"""

from typing import Any

from state import InvalidInputError
from logging_utils import get_logger
from steps.common import Dependencies, format_schema, validate_contract
from steps.prompts import (
    CONCEPTUAL_DESIGN_SCHEMA,
    LOCATION_NOT_SPECIFIED,
    PROMPT_CONCEPTUAL_DESIGN,
    PROMPT_SIMULATION,
    SIMULATION_SCHEMA,
)
from steps.schemas import ConceptualDesign, SimulationInput, SimulationResult

logger = get_logger(__name__)


def generate_conceptual_design(
    description: str,
    location: str,
    building_code: str,
    deps: Dependencies,
) -> ConceptualDesign:
    """
    Generate preliminary sections, foundation and loads for a project.

    Args:
        description: Project description.
        location: Project location ("" lets the model infer it).
        building_code: One of the configured codes (ACI, BS, UPC).
        deps: Dependencies (config, llm).

    Raises:
        InvalidInputError: On empty description or unknown building code.
        LLMError / MalformedResponseError: On upstream failure.
    """
    if not description or not description.strip():
        raise InvalidInputError("Project description is required")

    codes = deps.config.engineering.building_codes
    code = (building_code or "").strip().upper()
    if code not in codes:
        raise InvalidInputError(
            f"Invalid building code '{building_code}'. Expected one of: "
            f"{deps.config.engineering.building_codes_str()}"
        )

    prompt = PROMPT_CONCEPTUAL_DESIGN.format(
        language=deps.config.response_language,
        description=description.strip(),
        location=location or LOCATION_NOT_SPECIFIED,
        building_code=code,
        schema=format_schema(CONCEPTUAL_DESIGN_SCHEMA),
    )

    logger.info(f"Generating conceptual design ({code})")
    data = deps.llm.ask_json(prompt)
    return validate_contract(ConceptualDesign, data)


def simulate_structural_analysis(
    design: SimulationInput | dict[str, Any],
    deps: Dependencies,
) -> SimulationResult:
    """
    Estimate moments, shears and axial forces for representative elements.

    Args:
        design: Project description plus conceptual design fields, either as
            a SimulationInput or a camelCase dict.
        deps: Dependencies (config, llm).

    Raises:
        InvalidInputError: If the design data lacks a project description.
        LLMError / MalformedResponseError: On upstream failure.
    """
    if not isinstance(design, SimulationInput):
        try:
            design = SimulationInput.model_validate(design)
        except ValueError as e:
            raise InvalidInputError("Project description is required for simulation") from e

    prompt = PROMPT_SIMULATION.format(
        language=deps.config.response_language,
        description=design.project_description,
        structural_system=design.structural_system_suggestion,
        column_section=design.column_cross_section,
        beam_section=design.beam_cross_section,
        foundation=design.foundation_design,
        dead_load=design.dead_load,
        live_load=design.live_load,
        wind_load=design.wind_load,
        seismic_load=design.seismic_load,
        schema=format_schema(SIMULATION_SCHEMA),
    )

    logger.info("Running simplified structural simulation")
    data = deps.llm.ask_json(prompt, model=deps.config.llm.simulation_model)
    return validate_contract(SimulationResult, data)
