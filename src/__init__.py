"""
Structura: LLM-assisted preliminary analysis for construction projects.

Key design principles:
1. No global mutable state - pipeline state is an immutable PipelineState
2. Explicit dependencies via Dependencies container
3. Step order is data; one generic runner walks it
4. Step functions return partial updates, don't mutate

Modules:
- state.py: PipelineState, StateUpdate, AnalysisStepKind, StepStatus
- config.py: Immutable AppConfig, PathConfig, LLMConfig, EngineeringConstants
- llm.py: LLMClient (JSON mode, chat, speech), LLMError
- steps/: Analysis steps, conceptual design, simulation, concept explanations
- workflow.py: PipelineRunner, analyze_project
- history.py: HistoryStore over an injected storage slot
- assistant.py: ChatSession with tagged per-message state
- api.py: FastAPI application
- main.py: CLI and programmatic entry points
"""
