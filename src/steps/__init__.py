"""
Steps: LLM-backed operations used by the pipeline, the HTTP layer and the CLI.

Analysis step functions follow the pattern:
    def step_name(state: PipelineState, deps: Dependencies) -> StateUpdate

This package is organized into modules by concern:
- prompts: LLM prompt templates and output schemas
- schemas: pydantic response models
- common: Shared dependencies and reply helpers
- analysis: Step descriptors and the generic analysis step runner
- design: Conceptual design and simplified structural simulation
- education: Concept explanations
"""

# Core types
from steps.common import Dependencies, coerce_text, validate_contract

# Preliminary analysis
from steps.analysis import (
    ANALYSIS_STEPS,
    RESULT_FIELDS,
    AnalysisStep,
    analyze_focus,
    get_step,
    run_analysis_step,
)

# Design and simulation
from steps.design import generate_conceptual_design, simulate_structural_analysis

# Educational support
from steps.education import explain_concept

# Response models
from steps.schemas import (
    AcademicReference,
    ConceptExplanation,
    ConceptualDesign,
    ElementForces,
    SimulationInput,
    SimulationResult,
)

__all__ = [
    # Types
    "Dependencies",
    "AnalysisStep",
    # Helpers
    "coerce_text",
    "validate_contract",
    # Analysis
    "ANALYSIS_STEPS",
    "RESULT_FIELDS",
    "analyze_focus",
    "get_step",
    "run_analysis_step",
    # Design
    "generate_conceptual_design",
    "simulate_structural_analysis",
    # Education
    "explain_concept",
    # Models
    "AcademicReference",
    "ConceptExplanation",
    "ConceptualDesign",
    "ElementForces",
    "SimulationInput",
    "SimulationResult",
]
