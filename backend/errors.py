"""Exception hierarchy shared by the camera, the Gemini clients and the controller."""


class MoodTunesError(Exception):
    """Base class for every error raised by the app."""


class ConfigurationError(MoodTunesError):
    """Required startup configuration is missing."""


class CameraError(MoodTunesError):
    """The camera could not produce a frame."""


class PermissionDenied(CameraError):
    """The camera device could not be opened."""


class InvalidInput(MoodTunesError, ValueError):
    """An image payload was empty or could not be decoded."""


class UnrecognizedResult(MoodTunesError):
    """The classifier answered with something outside the emotion list."""


class MalformedResponse(MoodTunesError):
    """The playlist generator returned JSON that does not match the schema."""


class RemoteServiceError(MoodTunesError):
    """The Gemini API call itself failed."""


class InvalidTransition(MoodTunesError):
    """A user action is not allowed in the current phase."""

    def __init__(self, action: str, phase: str) -> None:
        super().__init__(f"{action} is not allowed while {phase}")
        self.action = action
        self.phase = phase
