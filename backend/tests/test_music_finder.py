import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions

from errors import ConfigurationError, MalformedResponse, RemoteServiceError
from models import Emotion, Language
from music_finder import PLAYLIST_SCHEMA, MusicFinder


@pytest.fixture
def model(playlist_json):
    model = MagicMock()
    model.generate_content_async = AsyncMock(return_value=MagicMock(text=playlist_json))
    return model


@pytest.fixture
def finder(model):
    return MusicFinder("test-key", model=model)


def test_requires_api_key():
    with pytest.raises(ConfigurationError):
        MusicFinder("")


def test_empty_languages_skip_remote_call(finder, model):
    assert asyncio.run(finder.generate_playlists(Emotion.SAD, [])) == []
    model.generate_content_async.assert_not_called()


def test_generate_parses_three_playlists_in_order(finder, model):
    playlists = asyncio.run(finder.generate_playlists(Emotion.HAPPY, [Language.ENGLISH]))

    assert [p.playlist_name for p in playlists] == ["Sunshine Mix", "Good Vibes Only", "Weekend Glow"]
    for playlist in playlists:
        assert len(playlist.songs) == 3
        for song in playlist.songs:
            assert song.title and song.artist and song.album
    assert playlists[0].songs[0].title == "Sunshine Mix Song 1"

    prompt = model.generate_content_async.await_args.args[0]
    assert "feeling happy" in prompt
    assert "English" in prompt
    config = model.generate_content_async.await_args.kwargs["generation_config"]
    assert config.response_mime_type == "application/json"
    assert config.response_schema is PLAYLIST_SCHEMA


def test_prompt_lists_every_language(finder, model):
    asyncio.run(finder.generate_playlists(Emotion.CALM, [Language.HINDI, Language.KOREAN]))

    prompt = model.generate_content_async.await_args.args[0]
    assert "Hindi, Korean" in prompt


def test_fenced_json_is_accepted(finder, model, playlist_json):
    model.generate_content_async.return_value = MagicMock(text=f"```json\n{playlist_json}\n```")

    playlists = asyncio.run(finder.generate_playlists(Emotion.HAPPY, [Language.ENGLISH]))

    assert len(playlists) == 3


def test_malformed_json_raises_and_logs_raw_text(finder, model, caplog):
    model.generate_content_async.return_value = MagicMock(text="[{oops")

    with caplog.at_level(logging.ERROR, logger="music_finder"):
        with pytest.raises(MalformedResponse) as excinfo:
            asyncio.run(finder.generate_playlists(Emotion.HAPPY, [Language.ENGLISH]))

    assert "[{oops" not in str(excinfo.value)
    assert "[{oops" in caplog.text


def test_missing_song_field_is_malformed(finder, model):
    model.generate_content_async.return_value = MagicMock(
        text='[{"playlistName": "Mix", "songs": [{"title": "Happy", "artist": "Pharrell"}]}]'
    )

    with pytest.raises(MalformedResponse):
        asyncio.run(finder.generate_playlists(Emotion.HAPPY, [Language.ENGLISH]))


def test_api_error_is_wrapped(finder, model):
    model.generate_content_async.side_effect = google_exceptions.InternalServerError("boom")

    with pytest.raises(RemoteServiceError):
        asyncio.run(finder.generate_playlists(Emotion.HAPPY, [Language.ENGLISH]))
