"""
Tests for the steps package.

Tests:
- Dependencies dataclass and reply helpers
- Step descriptors
- analyze_focus / run_analysis_step
- generate_conceptual_design / simulate_structural_analysis
- explain_concept
"""

import os
import sys
import pytest
from unittest.mock import Mock

# Add src to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import SAMPLE_DESIGN, SAMPLE_REPLIES, SAMPLE_SIMULATION
from llm import LLMError, MalformedResponseError
from state import ANALYSIS_ORDER, AnalysisStepKind, InvalidInputError, StepStatus, start
from steps import (
    ANALYSIS_STEPS,
    RESULT_FIELDS,
    ConceptualDesign,
    Dependencies,
    SimulationInput,
    analyze_focus,
    coerce_text,
    explain_concept,
    generate_conceptual_design,
    get_step,
    run_analysis_step,
    simulate_structural_analysis,
    validate_contract,
)


# =============================================================================
# Test Dependencies and helpers
# =============================================================================

class TestDependencies:
    """Tests for Dependencies dataclass."""

    def test_create_dependencies(self, mock_app_config):
        mock_llm = Mock()

        deps = Dependencies(config=mock_app_config, llm=mock_llm)

        assert deps.config == mock_app_config
        assert deps.llm == mock_llm


class TestCoerceText:
    """Tests for coerce_text."""

    def test_string_is_stripped(self):
        assert coerce_text("  RC frame \n") == "RC frame"

    def test_list_becomes_bullets(self):
        assert coerce_text(["Heat", "Sand storms"]) == "- Heat\n- Sand storms"

    @pytest.mark.parametrize("value", [None, 42, {"a": "b"}, [], [1, 2]])
    def test_other_values_are_empty(self, value):
        assert coerce_text(value) == ""


class TestValidateContract:
    """Tests for validate_contract."""

    def test_valid(self):
        design = validate_contract(ConceptualDesign, SAMPLE_DESIGN)

        assert design.column_width == 600
        assert design.model_dump(by_alias=True)["columnCrossSection"] == "600x600 mm"

    def test_invalid_raises_malformed(self):
        with pytest.raises(MalformedResponseError):
            validate_contract(ConceptualDesign, {**SAMPLE_DESIGN, "columnWidth": -5})


# =============================================================================
# Test step descriptors
# =============================================================================

class TestAnalysisSteps:
    """Tests for ANALYSIS_STEPS and get_step."""

    def test_one_descriptor_per_kind_in_order(self):
        assert [step.kind for step in ANALYSIS_STEPS] == list(ANALYSIS_ORDER)

    def test_result_fields(self):
        assert RESULT_FIELDS == (
            "suggestedStructuralSystem",
            "applicableBuildingCodes",
            "executionMethod",
            "potentialChallenges",
            "keyFocusAreas",
            "academicReferences",
        )

    def test_requirements_precede_each_step(self):
        """A step only depends on fields produced earlier in the pipeline."""
        produced = set()
        for step in ANALYSIS_STEPS:
            assert set(step.requires) <= produced
            produced.add(step.field)

    def test_get_step_by_tag(self):
        assert get_step("building-codes").field == "applicableBuildingCodes"

    def test_get_step_unknown_focus(self):
        with pytest.raises(InvalidInputError):
            get_step("cost-estimate")


# =============================================================================
# Test analyze_focus
# =============================================================================

class TestAnalyzeFocus:
    """Tests for analyze_focus."""

    def test_structural_system_in_riyadh(self, mock_deps):
        """The first step gets description and location, and returns only its field."""
        result = analyze_focus(
            "10-story residential tower", "Riyadh", "structural-system", {}, mock_deps
        )

        assert result == {"suggestedStructuralSystem": SAMPLE_REPLIES["suggestedStructuralSystem"]}
        prompt = mock_deps.llm.ask_json.call_args.args[0]
        assert "10-story residential tower" in prompt
        assert "Riyadh" in prompt
        assert "Arabic" in prompt

    def test_missing_location_asks_model_to_infer(self, mock_deps):
        analyze_focus("10-story residential tower", "", "structural-system", {}, mock_deps)

        prompt = mock_deps.llm.ask_json.call_args.args[0]
        assert "infer from description" in prompt

    def test_context_is_passed_forward(self, mock_deps):
        context = {"suggestedStructuralSystem": "Steel braced frame"}

        analyze_focus("Warehouse", "Jeddah", AnalysisStepKind.BUILDING_CODES, context, mock_deps)

        prompt = mock_deps.llm.ask_json.call_args.args[0]
        assert "Steel braced frame" in prompt

    def test_missing_context_rejected_before_call(self, mock_deps):
        with pytest.raises(InvalidInputError, match="suggestedStructuralSystem"):
            analyze_focus("Warehouse", "Jeddah", "execution-method", {}, mock_deps)

        mock_deps.llm.ask_json.assert_not_called()

    def test_empty_description_rejected(self, mock_deps):
        with pytest.raises(InvalidInputError):
            analyze_focus("  ", "Riyadh", "structural-system", {}, mock_deps)

        mock_deps.llm.ask_json.assert_not_called()

    def test_list_reply_is_joined(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = {"suggestedStructuralSystem": ["Core walls", "Flat slabs"]}

        result = analyze_focus("Tower", "Dubai", "structural-system", {}, mock_deps)

        assert result["suggestedStructuralSystem"] == "- Core walls\n- Flat slabs"

    def test_missing_field_is_malformed(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = {"somethingElse": "value"}

        with pytest.raises(MalformedResponseError):
            analyze_focus("Tower", "Dubai", "structural-system", {}, mock_deps)

    def test_references_are_validated(self, mock_deps):
        context = {"suggestedStructuralSystem": "RC frame"}

        result = analyze_focus("Tower", "Dubai", "academic-references", context, mock_deps)

        references = result["academicReferences"]
        assert len(references) == 1
        assert references[0]["title"] == "Design of Reinforced Concrete"
        assert references[0]["searchLink"].startswith("https://scholar.google.com/")

    def test_reference_without_link_is_malformed(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = {"academicReferences": [{"title": "No link"}]}

        with pytest.raises(MalformedResponseError):
            analyze_focus("Tower", "Dubai", "academic-references",
                          {"suggestedStructuralSystem": "RC frame"}, mock_deps)


# =============================================================================
# Test run_analysis_step
# =============================================================================

class TestRunAnalysisStep:
    """Tests for run_analysis_step."""

    def test_success_advances(self, initial_state, mock_deps):
        update = run_analysis_step(initial_state, mock_deps)

        assert update["result"] == {"suggestedStructuralSystem": SAMPLE_REPLIES["suggestedStructuralSystem"]}
        assert update["status"][AnalysisStepKind.STRUCTURAL_SYSTEM] == StepStatus.COMPLETE
        assert update["status"][AnalysisStepKind.BUILDING_CODES] == StepStatus.LOADING
        assert update["error"] is None

    def test_only_focus_field_is_merged(self, initial_state, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = {
            "suggestedStructuralSystem": "RC frame",
            "executionMethod": "should be ignored",
        }

        update = run_analysis_step(initial_state, mock_deps)

        assert update["result"] == {"suggestedStructuralSystem": "RC frame"}

    def test_failure_leaves_status(self, initial_state, mock_deps):
        mock_deps.llm.ask_json.side_effect = LLMError("Empty response from AI")

        update = run_analysis_step(initial_state, mock_deps)

        assert update == {
            "error": "Empty response from AI",
            "failed_step": AnalysisStepKind.STRUCTURAL_SYSTEM,
        }

    def test_terminal_state_is_noop(self, complete_state, mock_deps):
        assert run_analysis_step(complete_state, mock_deps) == {}
        mock_deps.llm.ask_json.assert_not_called()

    def test_last_step_has_no_successor(self, mock_deps):
        state = start("Tower", "Riyadh")
        fields = dict(SAMPLE_REPLIES)
        fields.pop("academicReferences")
        status = {kind: StepStatus.COMPLETE for kind in ANALYSIS_ORDER}
        status[AnalysisStepKind.ACADEMIC_REFERENCES] = StepStatus.LOADING
        state = state.apply_update({"result": fields, "status": status})

        new_state = state.apply_update(run_analysis_step(state, mock_deps))

        assert new_state.is_complete
        assert new_state.loading_count() == 0


# =============================================================================
# Test design steps
# =============================================================================

class TestConceptualDesign:
    """Tests for generate_conceptual_design."""

    def test_generates_design(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = SAMPLE_DESIGN

        design = generate_conceptual_design("10-story residential tower", "Riyadh", "aci", mock_deps)

        assert design.foundation_design == "Raft foundation 1.2 m thick"
        prompt = mock_deps.llm.ask_json.call_args.args[0]
        assert "ACI" in prompt

    def test_unknown_code_rejected(self, mock_deps):
        with pytest.raises(InvalidInputError, match="building code"):
            generate_conceptual_design("Tower", "Riyadh", "Eurocode", mock_deps)

        mock_deps.llm.ask_json.assert_not_called()

    def test_incomplete_reply_is_malformed(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = {"columnCrossSection": "600x600"}

        with pytest.raises(MalformedResponseError):
            generate_conceptual_design("Tower", "Riyadh", "BS", mock_deps)


class TestSimulation:
    """Tests for simulate_structural_analysis."""

    def test_simulates_from_dict(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = SAMPLE_SIMULATION

        result = simulate_structural_analysis(
            {"projectDescription": "10-story residential tower", **SAMPLE_DESIGN}, mock_deps
        )

        assert len(result.analysis_results) == 2
        assert result.analysis_results[0].axial == 2800.0
        assert mock_deps.llm.ask_json.call_args.kwargs["model"] == "test-simulation"
        prompt = mock_deps.llm.ask_json.call_args.args[0]
        assert "600x600 mm" in prompt

    def test_accepts_simulation_input(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = SAMPLE_SIMULATION

        design = SimulationInput(project_description="Bridge deck")
        result = simulate_structural_analysis(design, mock_deps)

        assert result.summary

    def test_missing_description_rejected(self, mock_deps):
        with pytest.raises(InvalidInputError):
            simulate_structural_analysis(SAMPLE_DESIGN, mock_deps)

    def test_empty_results_are_malformed(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = {"summary": "ok", "analysisResults": []}

        with pytest.raises(MalformedResponseError):
            simulate_structural_analysis({"projectDescription": "Tower"}, mock_deps)


# =============================================================================
# Test explain_concept
# =============================================================================

class TestExplainConcept:
    """Tests for explain_concept."""

    def test_explains(self, mock_deps):
        mock_deps.llm.ask_json.side_effect = None
        mock_deps.llm.ask_json.return_value = {
            "explanation": "Prestressing introduces compression before service loads.",
            "references": ["Lin & Burns, Design of Prestressed Concrete Structures"],
            "projectIdeas": ["Compare post-tensioned and RC flat slabs"],
        }

        explanation = explain_concept("prestressed concrete", "intermediate", "graduation project", mock_deps)

        assert explanation.project_ideas == ["Compare post-tensioned and RC flat slabs"]
        prompt = mock_deps.llm.ask_json.call_args.args[0]
        assert "prestressed concrete" in prompt
        assert "intermediate" in prompt

    def test_invalid_level(self, mock_deps):
        with pytest.raises(InvalidInputError):
            explain_concept("shear walls", "expert", "exam", mock_deps)

    def test_empty_topic(self, mock_deps):
        with pytest.raises(InvalidInputError):
            explain_concept("", "beginner", "exam", mock_deps)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
