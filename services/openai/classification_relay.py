"""Description: Oral cavity image classification relay using OpenAI's Responses API."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from openai import AsyncOpenAI

from models.patient_context import PatientContext
from services.openai.response_parser import extract_text, extract_usage
from services.openai.screening_prompts import build_system_prompt, build_user_prompt
from utils.media_validation import ValidatedImage

LOGGER = logging.getLogger(__name__)
DEFAULT_MODEL = "gpt-4o"
DEFAULT_MAX_OUTPUT_TOKENS = 4096


class ClassificationError(RuntimeError):
    """Raised when the provider call fails or returns no usable text."""


@dataclass
class RelayResponse:
    """Raw provider answer for one screening request."""

    text: str
    scan_id: Optional[str]
    model: str
    latency: float
    input_tokens: Optional[int] = None
    output_tokens: Optional[int] = None


def build_inputs(system_prompt: str, user_prompt: str, image_url: str) -> List[Dict[str, Any]]:
    """Build the Responses API input array: instructions, then text and image together."""
    return [
        {
            "type": "message",
            "role": "system",
            "content": [{"type": "input_text", "text": system_prompt}],
        },
        {
            "type": "message",
            "role": "user",
            "content": [
                {"type": "input_text", "text": user_prompt},
                {"type": "input_image", "image_url": image_url},
            ],
        },
    ]


class ClassificationRelay:
    """Send one image plus patient context to the model and return its answer verbatim.

    Timeouts and the single retry on transient failures are configured on the
    `AsyncOpenAI` client passed in.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_MODEL,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
    ) -> None:
        """Initialize the relay with an OpenAI async client."""
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.system_prompt = build_system_prompt()

    async def classify(self, image: ValidatedImage, context: Optional[PatientContext] = None) -> RelayResponse:
        """Classify an image, returning the provider text and message id.

        Raises:
            ClassificationError: If the call fails or the response holds no text.
        """
        start_time = time.time()
        inputs = build_inputs(self.system_prompt, build_user_prompt(context), image.data_uri)
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=inputs,
                max_output_tokens=self.max_output_tokens,
            )
        except Exception as exc:
            LOGGER.error("Error during OpenAI Responses API call: %s", exc)
            raise ClassificationError(f"Classification request failed: {exc}") from exc

        text = extract_text(response)
        if not text.strip():
            LOGGER.error("Empty classification output received from OpenAI: %r", response)
            raise ClassificationError("No response content from the classification model")

        usage = extract_usage(response)
        latency = time.time() - start_time
        LOGGER.info(
            "Classification received: id=%s model=%s chars=%d latency=%.2fs",
            getattr(response, "id", None),
            self.model,
            len(text),
            latency,
        )
        return RelayResponse(
            text=text,
            scan_id=getattr(response, "id", None),
            model=self.model,
            latency=latency,
            input_tokens=usage["input_tokens"],
            output_tokens=usage["output_tokens"],
        )

# end of ClassificationRelay
