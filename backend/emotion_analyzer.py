import io
import logging
from typing import Any, Optional

import google.generativeai as genai
from google.api_core import exceptions as google_exceptions
from PIL import Image, UnidentifiedImageError

from errors import ConfigurationError, InvalidInput, RemoteServiceError, UnrecognizedResult
from models import EMOTIONS, CapturedImage, Emotion

logger = logging.getLogger(__name__)


class EmotionAnalyzer:
    """Gemini vision client that reads one emotion label off a face photo."""

    PROMPT = (
        "Analyze the facial expression in this image and identify the primary emotion. "
        "Choose the most fitting emotion from this list: {choices}. "
        "Respond with ONLY the single word for the emotion from the list."
    )

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
        self._prompt = self.PROMPT.format(choices=", ".join(e.value for e in EMOTIONS))

    async def classify(self, image: CapturedImage) -> Emotion:
        self._validate(image)

        image_part = {"mime_type": image.mime_type, "data": image.data}
        try:
            response = await self._model.generate_content_async([image_part, self._prompt])
        except google_exceptions.GoogleAPIError as exc:
            raise RemoteServiceError(f"Emotion classification request failed: {exc}") from exc

        text = self._response_text(response)
        try:
            emotion = Emotion.parse(text)
        except ValueError:
            logger.warning("Classifier answered outside the emotion list: %r", text[:80])
            raise UnrecognizedResult("Could not determine a valid emotion from the image.") from None

        logger.info("Detected emotion: %s", emotion.value)
        return emotion

    async def classify_data_url(self, data_url: str) -> Emotion:
        return await self.classify(CapturedImage.from_data_url(data_url))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _validate(self, image: CapturedImage) -> None:
        if image is None or not image.data:
            raise InvalidInput("Image payload is empty.")
        if not image.mime_type.startswith("image/"):
            raise InvalidInput(f"Unsupported image type: {image.mime_type}")
        try:
            with Image.open(io.BytesIO(image.data)) as pil_image:
                pil_image.verify()
        except (Image.DecompressionBombError, UnidentifiedImageError, OSError, SyntaxError) as exc:
            raise InvalidInput("Image payload could not be decoded.") from exc

    @staticmethod
    def _response_text(response: Any) -> str:
        # .text raises ValueError when the candidate was blocked or empty
        try:
            text = response.text
        except ValueError as exc:
            raise UnrecognizedResult("The model returned no answer for the image.") from exc
        return (text or "").strip()
