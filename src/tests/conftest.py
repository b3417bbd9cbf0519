"""
Shared test fixtures and utilities for Structura tests.

This module provides:
- Shared fixtures for config, state and dependencies
- Temporary directory fixtures
- Mock LLM client fixtures with canned analysis replies
- In-memory history storage
"""

import os
import sys
import shutil
import tempfile
import pytest
from unittest.mock import Mock

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


# =============================================================================
# Canned model replies
# =============================================================================

SAMPLE_REPLIES = {
    "suggestedStructuralSystem": "Reinforced concrete moment frames with shear walls",
    "applicableBuildingCodes": "Saudi Building Code SBC 304, ACI 318",
    "executionMethod": "Cast-in-place concrete with climbing formwork",
    "potentialChallenges": "High summer temperatures affecting concrete curing",
    "keyFocusAreas": "Lateral load resistance and curing control",
    "academicReferences": [
        {
            "title": "Design of Reinforced Concrete",
            "authors": "McCormac, Brown",
            "note": "Standard text for RC frame design",
            "searchLink": "https://scholar.google.com/scholar?q=design+of+reinforced+concrete",
        }
    ],
}

SAMPLE_DESIGN = {
    "structuralSystemSuggestion": "RC moment frame with core walls",
    "columnCrossSection": "600x600 mm",
    "beamCrossSection": "300x600 mm",
    "foundationDesign": "Raft foundation 1.2 m thick",
    "deadLoad": "5.0 kN/m2",
    "liveLoad": "2.0 kN/m2",
    "windLoad": "1.2 kN/m2",
    "seismicLoad": "Zone 2A, V = 0.08W",
    "columnWidth": 600,
    "columnHeight": 600,
}

SAMPLE_SIMULATION = {
    "summary": "Interior columns govern; all members within capacity.",
    "analysisResults": [
        {"element": "Interior column C1", "moment": 120.5, "shear": 45.0, "axial": 2800.0},
        {"element": "Edge beam B3", "moment": 210.0, "shear": 130.0, "axial": 0.0},
    ],
}


def reply_for_prompt(prompt: str) -> dict:
    """Answer an analysis prompt with the canned value for the field it asks for."""
    for field, value in SAMPLE_REPLIES.items():
        if f"**{field}**" in prompt:
            return {field: value}
    raise AssertionError("Prompt does not name a known analysis field")


# =============================================================================
# Fixtures: Temporary Files and Directories
# =============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory that's cleaned up after the test."""
    tmpdir = tempfile.mkdtemp(prefix="structura_test_")
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


# =============================================================================
# Fixtures: Config
# =============================================================================

@pytest.fixture
def mock_path_config():
    """Create a mock PathConfig for testing."""
    from config import PathConfig
    return PathConfig(
        root_dir="/tmp/test_root",
        src_dir="/tmp/test_root/src",
        inputs_dir="/tmp/test_root/inputs",
        data_dir="/tmp/test_root/data",
        logs_dir="/tmp/test_root/logs",
        store_path="/tmp/test_root/data/structura_store.json",
    )


@pytest.fixture
def mock_llm_config():
    """Create a mock LLMConfig for testing."""
    from config import LLMConfig
    return LLMConfig(
        base_url="https://test.api.com",
        analysis_model="test-analysis",
        chat_model="test-chat",
        simulation_model="test-simulation",
    )


@pytest.fixture
def mock_app_config(mock_path_config, mock_llm_config):
    """Create a mock AppConfig for testing."""
    from config import AppConfig
    return AppConfig(
        paths=mock_path_config,
        llm=mock_llm_config,
    )


# =============================================================================
# Fixtures: State
# =============================================================================

@pytest.fixture
def initial_state():
    """A freshly started pipeline run."""
    from state import start
    return start("10-story residential tower", "Riyadh")


@pytest.fixture
def complete_state():
    """A pipeline run with every step complete."""
    from state import ANALYSIS_ORDER, PipelineState, StepStatus
    return PipelineState(
        description="10-story residential tower",
        location="Riyadh",
        result=dict(SAMPLE_REPLIES),
        status={kind: StepStatus.COMPLETE for kind in ANALYSIS_ORDER},
    )


# =============================================================================
# Fixtures: LLM
# =============================================================================

@pytest.fixture
def mock_openai_client():
    """Create a mock OpenAI client."""
    mock_client = Mock()
    mock_completion = Mock()
    mock_completion.choices = [Mock(message=Mock(content="Mock response"))]
    mock_completion.usage = Mock(prompt_tokens=10, completion_tokens=5)
    mock_client.chat.completions.create.return_value = mock_completion
    return mock_client


@pytest.fixture
def mock_llm_client():
    """
    Create a mock LLMClient.

    ask_json answers analysis prompts from SAMPLE_REPLIES; chat returns a
    fixed reply; synthesize_speech returns a tiny data URI.
    """
    from llm import LLMResponse

    mock_llm = Mock()
    mock_llm.ask_json.side_effect = lambda prompt, model=None: reply_for_prompt(prompt)
    mock_llm.chat.return_value = LLMResponse(
        content="Shear walls resist lateral loads efficiently.",
        prompt_tokens=100,
        completion_tokens=20,
    )
    mock_llm.synthesize_speech.return_value = "data:audio/wav;base64,UklGRg=="
    return mock_llm


@pytest.fixture
def mock_deps(mock_app_config, mock_llm_client):
    """Create mock Dependencies for testing."""
    from steps import Dependencies
    return Dependencies(
        config=mock_app_config,
        llm=mock_llm_client,
    )


# =============================================================================
# Fixtures: History
# =============================================================================

@pytest.fixture
def memory_storage():
    """Empty in-memory history storage."""
    from history import MemoryStorage
    return MemoryStorage()


@pytest.fixture
def history_store(memory_storage):
    """HistoryStore over in-memory storage."""
    from history import HistoryStore
    return HistoryStore(memory_storage)


def make_entry(entry_id: str, description: str = "Test project description"):
    """Build a minimal HistoryEntry with a complete analysis."""
    from history import HistoryEntry
    return HistoryEntry(
        id=entry_id,
        project_description=description,
        project_location="Riyadh",
        created_at="2024-01-01T00:00:00",
        analysis=dict(SAMPLE_REPLIES),
    )
