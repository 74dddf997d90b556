import base64
import binascii
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from errors import InvalidInput


class Emotion(str, Enum):
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    SURPRISED = "surprised"
    NEUTRAL = "neutral"
    CALM = "calm"
    FEARFUL = "fearful"
    DISGUSTED = "disgusted"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, text: str) -> "Emotion":
        """Match a free-text model answer against the enumeration.

        Only surrounding whitespace is ignored; case must match. Raises
        ValueError when the trimmed answer is not one of the values.
        """
        return cls(text.strip())


class Language(str, Enum):
    HINDI = "Hindi"
    TAMIL = "Tamil"
    TELUGU = "Telugu"
    MALAYALAM = "Malayalam"
    KANNADA = "Kannada"
    ENGLISH = "English"
    PUNJABI = "Punjabi"
    BENGALI = "Bengali"
    MARATHI = "Marathi"
    SPANISH = "Spanish"
    KOREAN = "Korean"
    JAPANESE = "Japanese"


EMOTIONS = tuple(Emotion)
LANGUAGES = tuple(Language)
DEFAULT_LANGUAGES = (Language.ENGLISH,)


class Song(BaseModel):
    model_config = ConfigDict(strict=True, str_strip_whitespace=True)

    title: str = Field(min_length=1)
    artist: str = Field(min_length=1)
    album: str = Field(min_length=1)


class Playlist(BaseModel):
    model_config = ConfigDict(strict=True, str_strip_whitespace=True, populate_by_name=True)

    playlist_name: str = Field(alias="playlistName", min_length=1)
    songs: List[Song]


PlaylistList = TypeAdapter(List[Playlist])


_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<payload>.*)$", re.DOTALL)


@dataclass(frozen=True)
class CapturedImage:
    """An encoded still frame. Lives in memory only."""

    data: bytes = field(repr=False)
    mime_type: str = "image/jpeg"

    @classmethod
    def from_data_url(cls, data_url: str) -> "CapturedImage":
        match = _DATA_URL.match((data_url or "").strip())
        if not match:
            raise InvalidInput("Image must be a base64 data URL.")
        try:
            data = base64.b64decode(match.group("payload"), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidInput("Image payload is not valid base64.") from exc
        if not data:
            raise InvalidInput("Image payload is empty.")
        return cls(data=data, mime_type=match.group("mime"))

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"
