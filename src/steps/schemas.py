"""
Response models for the JSON contracts handed to the LLM.

Models accept the camelCase keys the prompts ask for, so `model_validate`
works directly on a parsed reply and `model_dump(by_alias=True)` produces
the same shape for the HTTP layer and the history store.
"""

from pydantic import BaseModel, ConfigDict, Field, HttpUrl


class _Contract(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class AcademicReference(_Contract):
    """One citation suggested for the project."""
    title: str = Field(min_length=1)
    authors: str = ""
    note: str = ""
    search_link: HttpUrl = Field(alias="searchLink")


class ConceptualDesign(_Contract):
    """Preliminary sections, foundation and loads under a chosen code."""
    structural_system_suggestion: str = Field(alias="structuralSystemSuggestion")
    column_cross_section: str = Field(alias="columnCrossSection")
    beam_cross_section: str = Field(alias="beamCrossSection")
    foundation_design: str = Field(alias="foundationDesign")
    dead_load: str = Field(alias="deadLoad")
    live_load: str = Field(alias="liveLoad")
    wind_load: str = Field(alias="windLoad")
    seismic_load: str = Field(alias="seismicLoad")
    column_width: float = Field(alias="columnWidth", gt=0)
    column_height: float = Field(alias="columnHeight", gt=0)


class ElementForces(_Contract):
    """Estimated maximum internal forces for one structural element."""
    element: str
    moment: float
    shear: float
    axial: float


class SimulationResult(_Contract):
    summary: str
    analysis_results: list[ElementForces] = Field(alias="analysisResults", min_length=1)


class ConceptExplanation(_Contract):
    explanation: str = Field(min_length=1)
    references: list[str] = Field(default_factory=list)
    project_ideas: list[str] = Field(alias="projectIdeas", default_factory=list)


class SimulationInput(_Contract):
    """Design data a simulation is based on (description plus a conceptual design)."""
    project_description: str = Field(alias="projectDescription", min_length=1)
    structural_system_suggestion: str = Field(alias="structuralSystemSuggestion", default="")
    column_cross_section: str = Field(alias="columnCrossSection", default="")
    beam_cross_section: str = Field(alias="beamCrossSection", default="")
    foundation_design: str = Field(alias="foundationDesign", default="")
    dead_load: str = Field(alias="deadLoad", default="")
    live_load: str = Field(alias="liveLoad", default="")
    wind_load: str = Field(alias="windLoad", default="")
    seismic_load: str = Field(alias="seismicLoad", default="")
