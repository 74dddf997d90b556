"""Application state and the reducer that drives it.

The state is an immutable snapshot; every change goes through ``reduce``. Async
outcomes carry the ``epoch`` or ``request_id`` they were started under, and are
dropped when the state has moved on since.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple, Union

from errors import InvalidTransition
from models import DEFAULT_LANGUAGES, CapturedImage, Emotion, Language, Playlist

logger = logging.getLogger(__name__)

CLASSIFY_ERROR_MESSAGE = "Could not detect emotion. Please try again with a clearer image."
PLAYLIST_ERROR_MESSAGE = "Failed to generate playlists. Please try again."


class Phase(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    ANALYZING = "analyzing"
    RESULTS = "results"


@dataclass(frozen=True)
class AppState:
    phase: Phase = Phase.IDLE
    captured_image: Optional[CapturedImage] = None
    emotion: Optional[Emotion] = None
    selected_languages: Tuple[Language, ...] = DEFAULT_LANGUAGES
    playlists: Tuple[Playlist, ...] = ()
    is_loading: bool = False
    error: Optional[str] = None
    epoch: int = 0
    request_id: int = 0

    @property
    def fetch_key(self) -> Tuple[Optional[Emotion], Tuple[Language, ...]]:
        return self.emotion, self.selected_languages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "has_captured_image": self.captured_image is not None,
            "emotion": self.emotion.value if self.emotion else None,
            "emotion_label": self.emotion.label if self.emotion else None,
            "selected_languages": [language.value for language in self.selected_languages],
            "playlists": [playlist.model_dump(by_alias=True) for playlist in self.playlists],
            "is_loading": self.is_loading,
            "error": self.error,
        }


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class StartCapture:
    pass


@dataclass(frozen=True)
class CameraFailed:
    message: str


@dataclass(frozen=True)
class CaptureSucceeded:
    image: CapturedImage


@dataclass(frozen=True)
class ClassificationSucceeded:
    emotion: Emotion
    epoch: int


@dataclass(frozen=True)
class ClassificationFailed:
    message: str
    epoch: int


@dataclass(frozen=True)
class ToggleLanguage:
    language: Language


@dataclass(frozen=True)
class FetchStarted:
    request_id: int


@dataclass(frozen=True)
class FetchSucceeded:
    request_id: int
    playlists: Sequence[Playlist]


@dataclass(frozen=True)
class FetchFailed:
    request_id: int
    message: str


@dataclass(frozen=True)
class Reset:
    pass


Action = Union[
    StartCapture,
    CameraFailed,
    CaptureSucceeded,
    ClassificationSucceeded,
    ClassificationFailed,
    ToggleLanguage,
    FetchStarted,
    FetchSucceeded,
    FetchFailed,
    Reset,
]


def initial_state() -> AppState:
    return AppState()


def reduce(state: AppState, action: Action) -> AppState:
    if isinstance(action, Reset):
        return AppState(epoch=state.epoch + 1, request_id=state.request_id + 1)

    if isinstance(action, StartCapture):
        _require(state, action, Phase.IDLE, Phase.CAPTURING)
        return replace(state, phase=Phase.CAPTURING, error=None)

    if isinstance(action, CameraFailed):
        if state.phase is not Phase.CAPTURING:
            return _stale(state, action)
        return replace(state, error=action.message)

    if isinstance(action, CaptureSucceeded):
        _require(state, action, Phase.CAPTURING)
        return replace(
            state,
            phase=Phase.ANALYZING,
            captured_image=action.image,
            is_loading=True,
            error=None,
            playlists=(),
        )

    if isinstance(action, ClassificationSucceeded):
        if state.phase is not Phase.ANALYZING or action.epoch != state.epoch:
            return _stale(state, action)
        return replace(
            state,
            phase=Phase.RESULTS,
            emotion=action.emotion,
            # a playlist fetch is scheduled right after this
            is_loading=True,
            request_id=state.request_id + 1,
        )

    if isinstance(action, ClassificationFailed):
        if state.phase is not Phase.ANALYZING or action.epoch != state.epoch:
            return _stale(state, action)
        return replace(
            state,
            phase=Phase.CAPTURING,
            captured_image=None,
            is_loading=False,
            error=action.message,
        )

    if isinstance(action, ToggleLanguage):
        selected = state.selected_languages
        if action.language in selected:
            selected = tuple(language for language in selected if language is not action.language)
        else:
            selected = selected + (action.language,)
        return replace(
            state,
            selected_languages=selected,
            is_loading=state.is_loading or state.phase is Phase.RESULTS,
            request_id=state.request_id + 1,
        )

    if isinstance(action, FetchStarted):
        if not _is_current_fetch(state, action.request_id):
            return _stale(state, action)
        return replace(state, playlists=(), is_loading=True, error=None)

    if isinstance(action, FetchSucceeded):
        if not _is_current_fetch(state, action.request_id):
            return _stale(state, action)
        return replace(state, playlists=tuple(action.playlists), is_loading=False)

    if isinstance(action, FetchFailed):
        if not _is_current_fetch(state, action.request_id):
            return _stale(state, action)
        return replace(state, playlists=(), is_loading=False, error=action.message)

    raise TypeError(f"Unknown action: {action!r}")


def _require(state: AppState, action: Action, *phases: Phase) -> None:
    if state.phase not in phases:
        raise InvalidTransition(type(action).__name__, state.phase.value)


def _is_current_fetch(state: AppState, request_id: int) -> bool:
    return state.phase is Phase.RESULTS and request_id == state.request_id


def _stale(state: AppState, action: Action) -> AppState:
    logger.debug("Ignoring stale %s in phase %s", type(action).__name__, state.phase.value)
    return state
