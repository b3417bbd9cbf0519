"""
Engineering assistant: conversational Q&A about an analysed project.

A ChatSession keeps a linear, append-only transcript. Each round-trip adds
a user message and a model message; the model message starts Pending so a
UI can show a "thinking" state, then becomes Resolved(reply) or
Failed(localized error). An optional speech step narrates resolved
replies on a best-effort basis.

Usage:
    session = ChatSession(deps, project_context=context_from_entry(entry))
    reply = session.send("Why a shear wall system?")
    print(reply.content)
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Literal, Optional, Union

from history import HistoryEntry
from llm import LLMError
from logging_utils import get_logger
from state import InvalidInputError
from steps import Dependencies
from steps.prompts import CHAT_SYSTEM_PROMPT

logger = get_logger(__name__)

Role = Literal["user", "model"]

# text -> 'data:audio/wav;base64,...'
SpeechSynthesizer = Callable[[str], str]


class ChatBusyError(RuntimeError):
    """A send was attempted while another round-trip is still in flight."""


# === Message state: a tagged variant per turn ===

@dataclass(frozen=True)
class Pending:
    """Reply requested, not yet received."""


@dataclass(frozen=True)
class Resolved:
    text: str


@dataclass(frozen=True)
class Failed:
    """The round-trip failed; `message` is the user-facing notice shown instead."""
    message: str


TurnState = Union[Pending, Resolved, Failed]


@dataclass(frozen=True)
class ChatMessage:
    role: Role
    state: TurnState
    audio: Optional[str] = None
    audio_failed: bool = False

    @property
    def content(self) -> str:
        if isinstance(self.state, Resolved):
            return self.state.text
        if isinstance(self.state, Failed):
            return self.state.message
        return ""

    @property
    def status(self) -> str:
        if isinstance(self.state, Resolved):
            return "resolved"
        if isinstance(self.state, Failed):
            return "failed"
        return "pending"

    def to_dict(self) -> dict:
        data = {"role": self.role, "content": self.content, "status": self.status}
        if self.audio:
            data["audio"] = self.audio
        if self.audio_failed:
            data["audioFailed"] = True
        return data


# === Prompt assembly ===

CONTEXT_FIELDS = (
    ("description", "projectDescription"),
    ("structural_system", "suggestedStructuralSystem"),
    ("building_codes", "applicableBuildingCodes"),
    ("execution_method", "executionMethod"),
    ("potential_challenges", "potentialChallenges"),
    ("key_focus_areas", "keyFocusAreas"),
)


def context_from_entry(entry: HistoryEntry) -> dict[str, Any]:
    """Flatten a history entry into the project context the assistant expects."""
    return {
        "projectDescription": entry.project_description,
        "projectLocation": entry.project_location,
        **entry.analysis,
    }


def build_system_prompt(project_context: Optional[dict[str, Any]], deps: Dependencies) -> str:
    """Frame the conversation with the analysed project; missing fields are marked as such."""
    context = project_context or {}
    marker = deps.config.not_specified_marker
    values = {}
    for placeholder, key in CONTEXT_FIELDS:
        value = context.get(key)
        values[placeholder] = value if isinstance(value, str) and value.strip() else marker
    return CHAT_SYSTEM_PROMPT.format(language=deps.config.response_language, **values)


def validate_history(history: Any) -> list[dict[str, str]]:
    """
    Check a transcript received from outside.

    Raises:
        InvalidInputError: If history isn't a list of {role: user|model, content: str}.
    """
    if not isinstance(history, list):
        raise InvalidInputError("History is required")

    cleaned = []
    for i, message in enumerate(history):
        if not isinstance(message, dict):
            raise InvalidInputError(f"History item {i} must be an object")
        role = message.get("role")
        content = message.get("content")
        if role not in ("user", "model"):
            raise InvalidInputError(f"History item {i} has invalid role '{role}'")
        if not isinstance(content, str):
            raise InvalidInputError(f"History item {i} must have text content")
        # Audio and other UI metadata never reach the model
        cleaned.append({"role": role, "content": content})
    return cleaned


def complete_chat(
    project_context: Optional[dict[str, Any]],
    history: list[dict[str, str]],
    deps: Dependencies,
) -> str:
    """
    One chat-completion round-trip.

    Args:
        project_context: Analysed project fields used as system framing.
        history: Ordered {role: user|model, content} messages.
        deps: Dependencies (config, llm).

    Returns:
        The model's reply text.

    Raises:
        InvalidInputError: If history is malformed.
        LLMError: If the upstream call fails or returns nothing.
    """
    history = validate_history(history)

    messages = [{"role": "system", "content": build_system_prompt(project_context, deps)}]
    for message in history:
        messages.append({
            "role": "assistant" if message["role"] == "model" else "user",
            "content": message["content"],
        })

    response = deps.llm.chat(messages)
    return response.content


class ChatSession:
    """
    Append-only transcript of one conversation about one project.

    At most one round-trip may be in flight; a concurrent send raises
    ChatBusyError instead of interleaving placeholder replacement.
    """

    def __init__(
        self,
        deps: Dependencies,
        project_context: Optional[dict[str, Any]] = None,
        speech: Optional[SpeechSynthesizer] = None,
        on_change: Optional[Callable[[list[ChatMessage]], None]] = None,
    ):
        """
        Initialize a session with an empty transcript.

        Args:
            deps: Dependencies (config, llm).
            project_context: Fixed framing for every turn.
            speech: Optional synthesizer for best-effort narration of replies.
            on_change: Called with a transcript snapshot after every change.
        """
        self.deps = deps
        self.project_context = dict(project_context or {})
        self.speech = speech
        self.on_change = on_change
        self._messages: list[ChatMessage] = []
        self._busy = False

    @property
    def messages(self) -> list[ChatMessage]:
        return list(self._messages)

    @property
    def busy(self) -> bool:
        return self._busy

    def transcript(self) -> list[dict[str, str]]:
        """Resolved turns only, as sent to the model."""
        return [
            {"role": m.role, "content": m.content}
            for m in self._messages
            if isinstance(m.state, Resolved)
        ]

    def send(self, text: str) -> Optional[ChatMessage]:
        """
        Send a user message and wait for the reply.

        A failed round-trip of any kind ends as a Failed message; it is
        logged, not raised.

        Returns:
            The final model message (Resolved or Failed), or None when the
            input is empty or whitespace (nothing is appended in that case).

        Raises:
            ChatBusyError: If another send is still in flight.
        """
        if not text or not text.strip():
            return None
        if self._busy:
            raise ChatBusyError("A reply is still pending")

        self._busy = True
        try:
            self._messages.append(ChatMessage(role="user", state=Resolved(text)))
            history = self.transcript()
            index = len(self._messages)
            self._messages.append(ChatMessage(role="model", state=Pending()))
            self._notify()

            try:
                reply = complete_chat(self.project_context, history, self.deps)
                message = ChatMessage(role="model", state=Resolved(reply))
                logger.debug(f"Assistant replied ({len(reply)} chars)")
            except LLMError as e:
                logger.error(f"Assistant round-trip failed: {e}")
                message = ChatMessage(role="model", state=Failed(self.deps.config.chat_error_message))
            except Exception:
                # The failure notice is the outcome shown to the user
                logger.exception("Unexpected error during assistant round-trip")
                message = ChatMessage(role="model", state=Failed(self.deps.config.chat_error_message))

            self._messages[index] = message
            self._notify()

            if self.speech is not None and isinstance(message.state, Resolved):
                self._attach_audio(index)

            return self._messages[index]
        finally:
            self._busy = False

    def _attach_audio(self, index: int) -> None:
        """Narrate a resolved reply; failure only flags the message."""
        message = self._messages[index]
        try:
            audio = self.speech(message.content)
            if not audio:
                raise LLMError("No audio media was generated.")
            self._messages[index] = replace(message, audio=audio)
        except Exception as e:
            logger.warning(f"Speech synthesis failed: {e}")
            self._messages[index] = replace(message, audio_failed=True)
        self._notify()

    def reset(self) -> None:
        """Start over with an empty transcript."""
        if self._busy:
            raise ChatBusyError("Cannot reset while a reply is pending")
        self._messages = []
        self._notify()

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self.messages)
