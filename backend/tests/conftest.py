import io
import json

import pytest
from PIL import Image

from models import CapturedImage


@pytest.fixture(autouse=True)
def mock_settings(monkeypatch):
    """Set mock environment variables for all tests."""
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("DEBOUNCE_SECONDS", "0.01")


@pytest.fixture
def jpeg_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), color=(200, 150, 100)).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


@pytest.fixture
def captured_image(jpeg_bytes):
    return CapturedImage(data=jpeg_bytes, mime_type="image/jpeg")


@pytest.fixture
def playlists_payload():
    names = ["Sunshine Mix", "Good Vibes Only", "Weekend Glow"]
    return [
        {
            "playlistName": name,
            "songs": [
                {"title": f"{name} Song {n}", "artist": f"Artist {n}", "album": f"Album {n}"}
                for n in range(1, 4)
            ],
        }
        for name in names
    ]


@pytest.fixture
def playlist_json(playlists_payload):
    return json.dumps(playlists_payload)
