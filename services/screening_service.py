"""Screening workflow: cache lookup, remote classification, interpretation."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Optional, Set

from models.classification import ClassificationResult
from models.patient_context import PatientContext
from services.image_processing import ImageProcessor
from services.openai.classification_relay import ClassificationError, ClassificationRelay
from services.result_cache import ResultCache, fingerprint
from services.risk_interpreter import fallback_result, interpret
from utils.media_validation import ValidatedImage

LOGGER = logging.getLogger(__name__)


class AnalysisInProgressError(RuntimeError):
    """Raised when the same image is already being classified."""


class AnalysisUnavailableError(RuntimeError):
    """Raised when classification fails and fail-open is disabled."""


class ScreeningService:
    """Classify validated images, memoizing results per image fingerprint.

    Args:
        relay: Remote classification relay.
        cache: Result cache owned by this service.
        processor: Image processor used to shrink large images before sending.
        fail_open: When True a failed remote call yields a flagged low-risk
            default instead of an error.
    """

    def __init__(
        self,
        relay: ClassificationRelay,
        cache: ResultCache,
        processor: Optional[ImageProcessor] = None,
        fail_open: bool = True,
    ) -> None:
        self.relay = relay
        self.cache = cache
        self.processor = processor or ImageProcessor()
        self.fail_open = fail_open
        self._in_flight: Set[str] = set()

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def analyze(
        self,
        image: ValidatedImage,
        context: Optional[PatientContext] = None,
    ) -> ClassificationResult:
        """Return the classification for `image`.

        Raises:
            AnalysisInProgressError: If the same image is already in flight.
            AnalysisUnavailableError: If the remote call fails and fail-open is off.
        """
        key = fingerprint(image.base64)
        cached = self.cache.get(key)
        if cached is not None:
            LOGGER.info("Serving cached analysis for fingerprint %s", key)
            cached.cached = True
            return cached

        if key in self._in_flight:
            raise AnalysisInProgressError("An analysis for this image is already in progress.")

        self._in_flight.add(key)
        try:
            # Pillow decode and resize are blocking
            outgoing = await asyncio.to_thread(self.processor.compress, image)
            try:
                response = await self.relay.classify(outgoing, context)
            except ClassificationError as exc:
                if not self.fail_open:
                    raise AnalysisUnavailableError("Analysis unavailable") from exc
                LOGGER.error("Classification failed, returning fallback result: %s", exc)
                return fallback_result(scan_id=uuid.uuid4().hex)

            result = interpret(response.text, scan_id=response.scan_id or key)
            self.cache.put(key, result)
            LOGGER.info(
                "Analysis complete: scan_id=%s risk=%s confidence=%.2f",
                result.scan_id,
                result.risk,
                result.confidence,
            )
            return result
        finally:
            self._in_flight.discard(key)
