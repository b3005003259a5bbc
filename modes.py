"""Output modes: the built-in catalog, cleanup prompts and selection gating."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from loguru import logger

from interfaces import ConfigStore
from models import DEFAULT_MODE_ID, ModeDescriptor

if TYPE_CHECKING:
    from overlay_coordinator import OverlayCoordinator
    from session_controller import SessionStateMachine

_LANGUAGE_RULE = "Keep the EXACT SAME LANGUAGE as the input ({lang}). NEVER change the language."


@dataclass(frozen=True)
class ModePrompt:
    system: str
    user: str


_PROMPTS: dict[str, ModePrompt] = {
    "default": ModePrompt(
        system=(
            "You are a transcript cleaner that NEVER translates. You clean up speech transcripts "
            "by removing filler words and fixing grammar while keeping the EXACT SAME LANGUAGE as "
            "the input. If input is {lang}, output {lang}. NEVER change the language. "
            "Output ONLY the cleaned text."
        ),
        user="Clean this {lang} transcript (keep in {lang}, do NOT translate):\n\n{text}",
    ),
    "email": ModePrompt(
        system=(
            "You are a professional email formatter that NEVER translates. Format this transcript "
            "as a professional email with an appropriate greeting, well-structured body paragraphs, "
            "and a professional closing. " + _LANGUAGE_RULE + " Output ONLY the formatted email, nothing else."
        ),
        user="Format this {lang} transcript as a professional email (keep in {lang}):\n\n{text}",
    ),
    "bullets": ModePrompt(
        system=(
            "You are a content organizer that NEVER translates. Convert this transcript into clear, "
            "organized bullet points. Extract key points and use concise language. " + _LANGUAGE_RULE
            + " Output ONLY the bullet list using • or - markers, nothing else."
        ),
        user="Convert this {lang} transcript to bullet points (keep in {lang}):\n\n{text}",
    ),
    "summary": ModePrompt(
        system=(
            "You are a summarizer that NEVER translates. Condense this transcript into a brief "
            "summary capturing the main points. Be concise but comprehensive. " + _LANGUAGE_RULE
            + " Output ONLY the summary, nothing else."
        ),
        user="Summarize this {lang} transcript (keep in {lang}):\n\n{text}",
    ),
    "slack": ModePrompt(
        system=(
            "You are a chat message formatter that NEVER translates. Convert this transcript into a "
            "short, casual message suitable for Slack or chat. Keep it friendly and concise. "
            + _LANGUAGE_RULE + " Output ONLY the message, nothing else."
        ),
        user="Convert this {lang} transcript to a casual chat message (keep in {lang}):\n\n{text}",
    ),
    "meeting_notes": ModePrompt(
        system=(
            "You are a meeting notes formatter that NEVER translates. Structure this transcript as "
            "meeting notes with:\n- Key Discussion Points\n- Decisions Made\n- Action Items (if any)\n"
            + _LANGUAGE_RULE + " Output ONLY the formatted notes, nothing else."
        ),
        user="Format this {lang} transcript as meeting notes (keep in {lang}):\n\n{text}",
    ),
    "code_comment": ModePrompt(
        system=(
            "You are a code documentation formatter that NEVER translates. Format this transcript as "
            "a code documentation comment. Use appropriate format (JSDoc, docstring, etc. based on "
            "content). Be technical and precise. " + _LANGUAGE_RULE
            + " Output ONLY the formatted comment, nothing else."
        ),
        user="Format this {lang} transcript as a code comment (keep in {lang}):\n\n{text}",
    ),
}

BUILTIN_MODES = [
    ModeDescriptor("default", "Default", "Clean up grammar and filler words"),
    ModeDescriptor("email", "Email", "Format as professional email"),
    ModeDescriptor("bullets", "Bullet Points", "Convert to organized bullet points"),
    ModeDescriptor("summary", "Summary", "Condense into a brief summary"),
    ModeDescriptor("slack", "Slack Message", "Short, casual chat message"),
    ModeDescriptor("meeting_notes", "Meeting Notes", "Structure with key points and action items"),
    ModeDescriptor("code_comment", "Code Comment", "Format as code documentation"),
]


class BuiltinModeCatalog:
    def list_modes(self) -> list[ModeDescriptor]:
        return list(BUILTIN_MODES)


def build_prompt(mode_id: str, language_name: str, text: str) -> ModePrompt:
    """Render the system and user prompts for ``mode_id``; unknown ids use the default mode."""
    template = _PROMPTS.get(mode_id.lower(), _PROMPTS[DEFAULT_MODE_ID])
    return ModePrompt(
        system=template.system.format(lang=language_name),
        user=template.user.format(lang=language_name, text=text),
    )


class ModeRegistry:
    def __init__(
        self,
        modes: list[ModeDescriptor],
        config_store: ConfigStore,
        default_mode_id: str = DEFAULT_MODE_ID,
    ) -> None:
        self._modes = {m.id: m for m in modes}
        self._order = [m.id for m in modes]
        self._config_store = config_store
        self._default_mode_id = default_mode_id
        self._active_mode_id = default_mode_id
        self._session: Optional["SessionStateMachine"] = None
        self._overlay: Optional["OverlayCoordinator"] = None
        self.cleanup_available = False

    def attach(self, session: "SessionStateMachine", overlay: "OverlayCoordinator") -> None:
        self._session = session
        self._overlay = overlay

    @property
    def modes(self) -> list[ModeDescriptor]:
        return [self._modes[i] for i in self._order]

    @property
    def active_mode_id(self) -> str:
        return self._active_mode_id

    def get(self, mode_id: str) -> Optional[ModeDescriptor]:
        return self._modes.get(mode_id)

    def is_selectable(self, mode_id: str) -> bool:
        mode = self._modes.get(mode_id)
        if mode is None:
            return False
        return (
            not mode.requires_cleanup_capability
            or self.cleanup_available
            or mode.id == self._default_mode_id
        )

    async def select_mode(self, mode_id: str) -> bool:
        if not self.is_selectable(mode_id):
            logger.debug("Mode {} rejected (cleanup available: {})", mode_id, self.cleanup_available)
            return False
        self._active_mode_id = mode_id
        self._config_store.set_selected_mode(mode_id)
        await self._propagate(mode_id)
        return True

    async def restore(self) -> str:
        """Push the saved mode to the pipeline and overlay without gating."""
        saved = self._config_store.get_selected_mode()
        if saved not in self._modes:
            saved = self._default_mode_id
        self._active_mode_id = saved
        await self._propagate(saved)
        return saved

    async def _propagate(self, mode_id: str) -> None:
        if self._session is not None:
            self._session.active_mode_id = mode_id
        if self._overlay is not None:
            await self._overlay.set_mode(mode_id)
