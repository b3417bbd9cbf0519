"""
Main entry point for Structura.

This module wires together all components and provides both CLI and programmatic interfaces.

Usage:
    # Command line
    python main.py analyze --description "10-story residential tower" --location Riyadh
    python main.py history list
    python main.py design --entry <id> --code ACI
    python main.py chat --entry <id>
    python main.py serve --port 8000

    # Programmatic
    from main import run_analysis
    state, entry = run_analysis("10-story residential tower", "Riyadh")
"""

import argparse
import os
import sys
from pathlib import Path

from config import AppConfig, load_config, ensure_directories
from state import ANALYSIS_ORDER, AnalysisStepKind, InvalidInputError, PipelineState, StepStatus
from llm import LLMClient, LLMError
from history import HistoryEntry, HistoryStore, JsonFileStorage
from assistant import ChatSession, context_from_entry
from logging_utils import add_file_handler, configure_logging, set_verbose
from steps import (
    RESULT_FIELDS,
    Dependencies,
    SimulationInput,
    explain_concept,
    generate_conceptual_design,
    simulate_structural_analysis,
)
from workflow import PipelineFailedError, analyze_project


STATUS_MARKS = {
    StepStatus.PENDING: " ",
    StepStatus.LOADING: "~",
    StepStatus.COMPLETE: "x",
}


def create_dependencies(config: AppConfig, log_dir: str | None = None) -> Dependencies:
    """
    Create the dependencies container.

    Args:
        config: Application configuration.
        log_dir: Optional directory for LLM logs.

    Returns:
        Dependencies instance with all external dependencies.
    """
    log_path = os.path.join(log_dir, "llm_logs.jsonl") if log_dir else None
    llm = LLMClient(config.llm, log_path=log_path)
    return Dependencies(config=config, llm=llm)


def open_history(config: AppConfig) -> HistoryStore:
    """Open the persisted history slot configured for this installation."""
    return HistoryStore(JsonFileStorage(config.paths.store_path, slot=config.history_slot))


def validate_description(description: str, config: AppConfig) -> str:
    """
    Apply the input policy for project descriptions.

    Raises:
        InvalidInputError: If the description is shorter than configured.
    """
    description = (description or "").strip()
    if len(description) < config.min_description_length:
        raise InvalidInputError(
            f"Project description must be at least {config.min_description_length} characters"
        )
    return description


def print_progress(result: dict, status: dict[AnalysisStepKind, StepStatus]) -> None:
    """Render the step checklist after each completed step."""
    done = sum(1 for s in status.values() if s == StepStatus.COMPLETE)
    print(f"\n[{done}/{len(ANALYSIS_ORDER)}]")
    for kind in ANALYSIS_ORDER:
        print(f"  [{STATUS_MARKS[status[kind]]}] {kind.value}")


def print_entry(entry: HistoryEntry) -> None:
    print(f"\n{'='*60}")
    print(f"Entry: {entry.id}  ({entry.created_at})")
    print(f"Project: {entry.project_description}")
    print(f"Location: {entry.project_location or '-'}")
    print(f"{'='*60}")

    for field in RESULT_FIELDS:
        value = entry.analysis.get(field)
        if value is None:
            continue
        print(f"\n## {field}")
        if isinstance(value, list):
            for ref in value:
                print(f"- {ref.get('title')} ({ref.get('authors')})")
                print(f"  {ref.get('searchLink')}")
        else:
            print(value)

    if entry.conceptual_design:
        print("\n## conceptualDesign")
        for key, value in entry.conceptual_design.items():
            print(f"{key}: {value}")

    if entry.simulation:
        print("\n## simulation")
        print(entry.simulation.get("summary", ""))
        for forces in entry.simulation.get("analysisResults", []):
            print(f"- {forces.get('element')}: M={forces.get('moment')} "
                  f"V={forces.get('shear')} N={forces.get('axial')}")


def run_analysis(
    description: str,
    location: str = "",
    config: AppConfig | None = None,
    verbose: bool = True,
) -> tuple[PipelineState, HistoryEntry]:
    """
    Run a full preliminary analysis and record it in history.

    This is the main programmatic interface.

    Args:
        description: Project description.
        location: Project location (optional).
        config: Application configuration (loads default if None).
        verbose: Print progress information.

    Returns:
        (final pipeline state, the new history entry).

    Raises:
        InvalidInputError: If the description is too short.
        PipelineFailedError: If a step fails.
    """
    if config is None:
        config = load_config()
    ensure_directories(config)
    add_file_handler(config.paths.logs_dir)

    description = validate_description(description, config)
    deps = create_dependencies(config, log_dir=config.paths.logs_dir)
    history = open_history(config)

    if verbose:
        print(f"\n{'='*60}")
        print(f"Analyzing: {description[:60]}")
        print(f"Location: {location or '-'}")
        print(f"{'='*60}")

    return analyze_project(
        description,
        location,
        deps,
        history=history,
        on_progress=print_progress if verbose else None,
        verbose=verbose,
    )


def _find_entry(history: HistoryStore, entry_id: str | None) -> HistoryEntry:
    """Look up an entry by id, defaulting to the most recent one."""
    if entry_id:
        entry = history.select(entry_id)
        if entry is None:
            raise InvalidInputError(f"No history entry with id {entry_id}")
        return entry
    entries = history.list()
    if not entries:
        raise InvalidInputError("History is empty; run an analysis first")
    return entries[0]


# === Subcommands ===

def cmd_analyze(args, config: AppConfig) -> int:
    if args.description_file:
        description_file = Path(args.description_file)
        if not description_file.exists():
            print(f"Error: Description file not found: {args.description_file}")
            return 1
        description = description_file.read_text(encoding="utf-8")
    else:
        description = args.description

    try:
        _, entry = run_analysis(description, args.location or "", config=config, verbose=not args.quiet)
    except PipelineFailedError as e:
        print(f"\nAnalysis failed at {e.state.failed_step.value if e.state.failed_step else '?'}")
        print(f"Error: {e.state.error}")
        return 1

    print_entry(entry)
    print(f"\nSaved as history entry {entry.id}")
    return 0


def cmd_history(args, config: AppConfig) -> int:
    history = open_history(config)

    if args.action == "list":
        entries = history.list()
        if not entries:
            print("No analyses yet")
        for entry in entries:
            extras = [name for name, value in (("design", entry.conceptual_design),
                                               ("simulation", entry.simulation)) if value]
            suffix = f"  [{', '.join(extras)}]" if extras else ""
            print(f"{entry.id}  {entry.project_description[:50]}{suffix}")
    elif args.action == "show":
        print_entry(_find_entry(history, args.entry))
    elif args.action == "clear":
        print(f"Removed {history.clear()} entries")
    return 0


def cmd_design(args, config: AppConfig) -> int:
    history = open_history(config)
    entry = _find_entry(history, args.entry)
    deps = create_dependencies(config, log_dir=config.paths.logs_dir)

    design = generate_conceptual_design(
        entry.project_description, entry.project_location, args.code, deps
    )
    updated = history.update_entry(entry.id, {"conceptualDesign": design.model_dump(by_alias=True)})
    print_entry(updated)
    return 0


def cmd_simulate(args, config: AppConfig) -> int:
    history = open_history(config)
    entry = _find_entry(history, args.entry)
    if not entry.conceptual_design:
        print(f"Error: Entry {entry.id} has no conceptual design; run 'design' first")
        return 1

    deps = create_dependencies(config, log_dir=config.paths.logs_dir)
    design = SimulationInput.model_validate(
        {**entry.conceptual_design, "projectDescription": entry.project_description}
    )
    result = simulate_structural_analysis(design, deps)
    updated = history.update_entry(entry.id, {"simulation": result.model_dump(by_alias=True)})
    print_entry(updated)
    return 0


def cmd_explain(args, config: AppConfig) -> int:
    deps = create_dependencies(config, log_dir=config.paths.logs_dir)
    explanation = explain_concept(args.topic, args.level, args.goal, deps)

    print(f"\n{explanation.explanation}")
    if explanation.references:
        print("\nReferences:")
        for ref in explanation.references:
            print(f"- {ref}")
    if explanation.project_ideas:
        print("\nProject ideas:")
        for idea in explanation.project_ideas:
            print(f"- {idea}")
    return 0


def cmd_chat(args, config: AppConfig) -> int:
    history = open_history(config)
    entry = _find_entry(history, args.entry)
    deps = create_dependencies(config, log_dir=config.paths.logs_dir)

    session = ChatSession(
        deps,
        project_context=context_from_entry(entry),
        speech=deps.llm.synthesize_speech if args.speak else None,
    )

    print(f"Chatting about: {entry.project_description[:60]}")
    print("Type 'exit' to quit, '/reset' to start over.\n")

    while True:
        try:
            text = input("you> ")
        except EOFError:
            print()
            break

        if text.strip() in ("exit", "quit"):
            break
        if text.strip() == "/reset":
            session.reset()
            print("(conversation cleared)")
            continue

        reply = session.send(text)
        if reply is None:
            continue
        print(f"assistant> {reply.content}\n")
        if reply.audio_failed:
            print("(audio unavailable)")

    return 0


def cmd_serve(args, config: AppConfig) -> int:
    import uvicorn
    from api import create_app

    deps = create_dependencies(config, log_dir=config.paths.logs_dir)
    app = create_app(deps, open_history(config))
    uvicorn.run(app, host=args.host, port=args.port)
    return 0


COMMANDS = {
    "analyze": cmd_analyze,
    "history": cmd_history,
    "design": cmd_design,
    "simulate": cmd_simulate,
    "explain": cmd_explain,
    "chat": cmd_chat,
    "serve": cmd_serve,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Structura: LLM-assisted construction engineering analysis",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python main.py analyze --description "10-story residential tower" --location Riyadh
    python main.py design --code ACI
    python main.py explain --topic "shear walls" --level beginner --goal "graduation project"
        """
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config JSON file"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Run the preliminary analysis pipeline")
    input_group = analyze.add_mutually_exclusive_group(required=True)
    input_group.add_argument("--description", type=str, help="Project description text")
    input_group.add_argument("--description_file", type=str, help="Path to a text file with the description")
    analyze.add_argument("--location", type=str, default="", help="Project location")
    analyze.add_argument("--quiet", action="store_true", help="Suppress progress output")

    history = subparsers.add_parser("history", help="Inspect or clear saved analyses")
    history.add_argument("action", choices=["list", "show", "clear"])
    history.add_argument("--entry", type=str, default=None, help="Entry id (default: most recent)")

    design = subparsers.add_parser("design", help="Attach a conceptual design to an analysis")
    design.add_argument("--entry", type=str, default=None, help="Entry id (default: most recent)")
    design.add_argument("--code", type=str, default="ACI", help="Building code (ACI, BS, UPC)")

    simulate = subparsers.add_parser("simulate", help="Attach a structural simulation to an analysis")
    simulate.add_argument("--entry", type=str, default=None, help="Entry id (default: most recent)")

    explain = subparsers.add_parser("explain", help="Explain an engineering concept")
    explain.add_argument("--topic", type=str, required=True)
    explain.add_argument("--level", type=str, default="beginner",
                         help="beginner, intermediate or advanced")
    explain.add_argument("--goal", type=str, required=True, help="What the explanation is for")

    chat = subparsers.add_parser("chat", help="Ask the assistant about an analysis")
    chat.add_argument("--entry", type=str, default=None, help="Entry id (default: most recent)")
    chat.add_argument("--speak", action="store_true", help="Also synthesize spoken replies")

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def main():
    """Command-line interface."""
    args = build_parser().parse_args()

    configure_logging()
    if args.verbose:
        set_verbose(True)

    config = load_config(args.config) if args.config else load_config()
    ensure_directories(config)
    add_file_handler(config.paths.logs_dir)

    try:
        sys.exit(COMMANDS[args.command](args, config))
    except InvalidInputError as e:
        print(f"Error: {e}")
        sys.exit(2)
    except LLMError as e:
        print(f"\nModel error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
