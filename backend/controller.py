import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Set

from app_state import (
    CLASSIFY_ERROR_MESSAGE,
    PLAYLIST_ERROR_MESSAGE,
    Action,
    AppState,
    CameraFailed,
    CaptureSucceeded,
    ClassificationFailed,
    ClassificationSucceeded,
    FetchFailed,
    FetchStarted,
    FetchSucceeded,
    Phase,
    Reset,
    StartCapture,
    ToggleLanguage,
    initial_state,
    reduce,
)
from camera import CAMERA_DENIED_MESSAGE, CameraSession
from emotion_analyzer import EmotionAnalyzer
from errors import CameraError, InvalidTransition
from models import CapturedImage, Emotion, Language, Playlist
from music_finder import MusicFinder

logger = logging.getLogger(__name__)

StateListener = Callable[[AppState, AppState], None]


class MoodController:
    """Runs the capture -> analyze -> results flow on one asyncio loop.

    Every coroutine here must run on the same event loop; the reducer is the
    only place state changes.
    """

    def __init__(
        self,
        analyzer: EmotionAnalyzer,
        finder: MusicFinder,
        camera_factory: Callable[[], CameraSession],
        debounce_seconds: float = 0.5,
    ) -> None:
        self._analyzer = analyzer
        self._finder = finder
        self._camera_factory = camera_factory
        self._debounce_seconds = debounce_seconds

        self._state = initial_state()
        self._camera: Optional[CameraSession] = None
        self._camera_lock = asyncio.Lock()
        self._debounce_task: Optional["asyncio.Task[None]"] = None
        self._tasks: Set["asyncio.Task[None]"] = set()
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def camera(self) -> Optional[CameraSession]:
        return self._camera

    def subscribe(self, listener: StateListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------
    async def start_capture(self) -> AppState:
        self.dispatch(StartCapture())
        await self._open_camera()
        return self._state

    async def capture(self) -> AppState:
        if self._state.phase is not Phase.CAPTURING:
            raise InvalidTransition("CaptureSucceeded", self._state.phase.value)
        camera = self._camera
        if camera is None or not camera.is_open:
            self.dispatch(CameraFailed(CAMERA_DENIED_MESSAGE))
            return self._state

        self._camera = None
        try:
            image = await asyncio.to_thread(camera.capture)
        except CameraError:
            logger.exception("Capture failed")
            self.dispatch(CameraFailed(CAMERA_DENIED_MESSAGE))
            await self._open_camera()
            return self._state
        return self._begin_analysis(image)

    async def submit_image(self, data_url: str) -> AppState:
        """Analyze an image captured elsewhere, e.g. by the browser."""
        image = CapturedImage.from_data_url(data_url)
        if self._state.phase is Phase.IDLE:
            self.dispatch(StartCapture())
        self._close_camera()
        return self._begin_analysis(image)

    async def toggle_language(self, language: Language) -> AppState:
        return self.dispatch(ToggleLanguage(language))

    async def reset(self) -> AppState:
        self._cancel_debounce()
        self._close_camera()
        return self.dispatch(Reset())

    async def join(self) -> None:
        """Wait for every scheduled timer, classification and fetch to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        self._cancel_debounce()
        self._close_camera()
        await self.join()

    # ------------------------------------------------------------------
    # State plumbing
    # ------------------------------------------------------------------
    def dispatch(self, action: Action) -> AppState:
        previous = self._state
        self._state = reduce(previous, action)

        if self._state is not previous:
            for listener in self._listeners:
                listener(previous, self._state)
            if self._should_fetch(previous, self._state):
                self._schedule_fetch()
        return self._state

    @staticmethod
    def _should_fetch(previous: AppState, current: AppState) -> bool:
        if current.phase is not Phase.RESULTS or current.emotion is None:
            return False
        return previous.phase is not Phase.RESULTS or previous.fetch_key != current.fetch_key

    def _spawn(self, coro) -> "asyncio.Task[None]":
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # ------------------------------------------------------------------
    # Camera
    # ------------------------------------------------------------------
    async def _open_camera(self) -> None:
        # Concurrent starts share one device; the second waits and finds it open
        async with self._camera_lock:
            if self._camera is not None and self._camera.is_open:
                return
            try:
                camera = await asyncio.to_thread(self._camera_factory)
            except CameraError as exc:
                logger.warning("Camera unavailable: %s", exc)
                self.dispatch(CameraFailed(CAMERA_DENIED_MESSAGE))
                return

            if self._state.phase is not Phase.CAPTURING:
                # Reset or a browser upload won the race while the device was opening
                camera.release()
                return
            self._camera = camera

    def _close_camera(self) -> None:
        camera, self._camera = self._camera, None
        if camera is not None:
            camera.release()

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------
    def _begin_analysis(self, image: CapturedImage) -> AppState:
        self.dispatch(CaptureSucceeded(image))
        self._spawn(self._classify(image, self._state.epoch))
        return self._state

    async def _classify(self, image: CapturedImage, epoch: int) -> None:
        try:
            emotion = await self._analyzer.classify(image)
        except Exception:
            logger.exception("Emotion classification failed")
            self.dispatch(ClassificationFailed(CLASSIFY_ERROR_MESSAGE, epoch))
            if self._state.phase is Phase.CAPTURING and self._state.epoch == epoch:
                await self._open_camera()
            return
        self.dispatch(ClassificationSucceeded(emotion, epoch))

    # ------------------------------------------------------------------
    # Debounced playlist fetch
    # ------------------------------------------------------------------
    def _schedule_fetch(self) -> None:
        self._cancel_debounce()
        state = self._state
        self._debounce_task = self._spawn(
            self._debounced_fetch(state.request_id, state.emotion, state.selected_languages)
        )

    def _cancel_debounce(self) -> None:
        task, self._debounce_task = self._debounce_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _debounced_fetch(
        self, request_id: int, emotion: Emotion, languages: Sequence[Language]
    ) -> None:
        await asyncio.sleep(self._debounce_seconds)
        # The fetch gets its own task so a later reschedule cannot cancel it
        self._spawn(self._fetch(request_id, emotion, languages))

    async def _fetch(self, request_id: int, emotion: Emotion, languages: Sequence[Language]) -> None:
        self.dispatch(FetchStarted(request_id))
        try:
            playlists: List[Playlist] = await self._finder.generate_playlists(emotion, languages)
        except Exception:
            logger.exception("Playlist generation failed")
            self.dispatch(FetchFailed(request_id, PLAYLIST_ERROR_MESSAGE))
            return
        self.dispatch(FetchSucceeded(request_id, playlists))
