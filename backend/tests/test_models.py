import base64

import pytest
from pydantic import ValidationError

from errors import InvalidInput
from models import DEFAULT_LANGUAGES, LANGUAGES, CapturedImage, Emotion, Language, Playlist, PlaylistList, Song


def test_emotion_parse_trims_whitespace():
    assert Emotion.parse("  happy\n") is Emotion.HAPPY


def test_emotion_parse_is_case_sensitive():
    with pytest.raises(ValueError):
        Emotion.parse("HAPPY")
    with pytest.raises(ValueError):
        Emotion.parse("Happy")


def test_emotion_parse_rejects_unknown_label():
    with pytest.raises(ValueError):
        Emotion.parse("ecstatic")


def test_emotion_label_is_capitalized():
    assert Emotion.HAPPY.label == "Happy"


def test_default_language_selection_is_english_only():
    assert DEFAULT_LANGUAGES == (Language.ENGLISH,)
    assert LANGUAGES[5] is Language.ENGLISH


def test_song_requires_every_field():
    with pytest.raises(ValidationError):
        Song(title="Happy", artist="Pharrell Williams")  # type: ignore


def test_song_rejects_blank_fields():
    with pytest.raises(ValidationError):
        Song(title="   ", artist="Pharrell Williams", album="G I R L")


def test_song_does_not_coerce_numbers():
    with pytest.raises(ValidationError):
        Song(title=123, artist="Pharrell Williams", album="G I R L")  # type: ignore


def test_playlist_reads_camel_case_name(playlists_payload):
    playlist = Playlist.model_validate(playlists_payload[0])
    assert playlist.playlist_name == "Sunshine Mix"
    assert playlist.model_dump(by_alias=True)["playlistName"] == "Sunshine Mix"


def test_playlist_list_keeps_order(playlist_json):
    playlists = PlaylistList.validate_json(playlist_json)
    assert [p.playlist_name for p in playlists] == ["Sunshine Mix", "Good Vibes Only", "Weekend Glow"]
    assert [s.title for s in playlists[1].songs] == [
        "Good Vibes Only Song 1",
        "Good Vibes Only Song 2",
        "Good Vibes Only Song 3",
    ]


def test_captured_image_from_data_url(jpeg_bytes):
    data_url = "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode()
    image = CapturedImage.from_data_url(data_url)
    assert image.mime_type == "image/jpeg"
    assert image.data == jpeg_bytes
    assert image.to_data_url() == data_url


@pytest.mark.parametrize(
    "data_url",
    ["", "not a data url", "data:image/jpeg;base64,", "data:image/jpeg;base64,@@@"],
)
def test_captured_image_rejects_malformed_data_url(data_url):
    with pytest.raises(InvalidInput):
        CapturedImage.from_data_url(data_url)


def test_captured_image_repr_hides_bytes(captured_image):
    assert "data=" not in repr(captured_image)
