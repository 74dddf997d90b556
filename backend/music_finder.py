import logging
import re
from typing import Any, Dict, List, Optional, Sequence

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from pydantic import ValidationError

from errors import ConfigurationError, MalformedResponse, RemoteServiceError
from models import Emotion, Language, Playlist, PlaylistList

logger = logging.getLogger(__name__)

PLAYLIST_COUNT = 3
SONGS_PER_PLAYLIST = 3

PLAYLIST_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "description": "A list of playlists.",
    "items": {
        "type": "OBJECT",
        "properties": {
            "playlistName": {"type": "STRING", "description": "Creative name for the playlist."},
            "songs": {
                "type": "ARRAY",
                "description": "A list of songs in the playlist.",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "title": {"type": "STRING", "description": "The title of the song."},
                        "artist": {"type": "STRING", "description": "The artist of the song."},
                        "album": {"type": "STRING", "description": "The album of the song."},
                    },
                    "required": ["title", "artist", "album"],
                },
            },
        },
        "required": ["playlistName", "songs"],
    },
}


class MusicFinder:
    """Asks Gemini for mood playlists and validates what comes back."""

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = "gemini-2.5-flash",
        model: Any = None,
    ) -> None:
        if not api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set.")

        if model is None:
            genai.configure(api_key=api_key)
            model = genai.GenerativeModel(model_name)
        self._model = model
        self._generation_config = genai.GenerationConfig(
            response_mime_type="application/json",
            response_schema=PLAYLIST_SCHEMA,
        )

    async def generate_playlists(
        self, emotion: Emotion, languages: Sequence[Language]
    ) -> List[Playlist]:
        """Return playlists for ``emotion`` spanning ``languages``.

        No request is made when ``languages`` is empty.
        """
        if not languages:
            return []

        prompt = self._build_prompt(emotion, languages)
        try:
            response = await self._model.generate_content_async(
                prompt, generation_config=self._generation_config
            )
        except google_exceptions.GoogleAPIError as exc:
            raise RemoteServiceError(f"Playlist generation request failed: {exc}") from exc

        playlists = self.parse_playlists(self._response_text(response))
        logger.info(
            "Generated %d playlists for %s in %s",
            len(playlists),
            emotion.value,
            ", ".join(language.value for language in languages),
        )
        return playlists

    # ------------------------------------------------------------------
    # Gemini helpers
    # ------------------------------------------------------------------
    def _build_prompt(self, emotion: Emotion, languages: Sequence[Language]) -> str:
        return (
            f"Generate a list of {PLAYLIST_COUNT} diverse song playlists for someone feeling "
            f"{emotion.value}.\n"
            f"The songs should be in the following languages: "
            f"{', '.join(language.value for language in languages)}.\n"
            "The songs must be real and popular if possible.\n"
            f"Each playlist should have a creative name and contain {SONGS_PER_PLAYLIST} songs, "
            "each with its title, artist and album."
        )

    @staticmethod
    def _response_text(response: Any) -> str:
        try:
            return (response.text or "").strip()
        except ValueError as exc:
            logger.error("Playlist response had no usable candidate: %s", exc)
            raise MalformedResponse("Received an invalid format from the playlist generator.") from exc

    @staticmethod
    def parse_playlists(text: str) -> List[Playlist]:
        fenced = re.search(r"```(?:json)?\s*(?P<body>[\s\S]*?)```", text)
        if fenced:
            text = fenced.group("body").strip()

        try:
            return PlaylistList.validate_json(text)
        except ValidationError as exc:
            logger.error("Failed to parse playlist response: %s\nRaw response: %s", exc, text)
            raise MalformedResponse("Received an invalid format from the playlist generator.") from exc
