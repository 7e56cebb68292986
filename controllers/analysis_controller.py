"""Controllers for screening requests and stored analyses."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiosqlite
from fastapi import HTTPException, Request
from fastapi.responses import Response

from dal.analysis_dal import AnalysisDAL
from dal.patient_dal import PatientDAL
from models.analysis_record import AnalysisRecord
from models.classification import ClassificationResult
from models.patient_context import PatientContext
from services.screening_service import (
    AnalysisInProgressError,
    AnalysisUnavailableError,
    ScreeningService,
)
from utils.media_validation import InvalidImageError, ValidatedImage, validate_image_payload

LOGGER = logging.getLogger(__name__)


def invalid_image(exc: InvalidImageError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "Invalid image format", "details": exc.reason})


def database_error(exc: Exception) -> HTTPException:
    LOGGER.error("Database operation failed: %s", exc)
    return HTTPException(status_code=500, detail={"error": "Database error", "details": str(exc)})


async def _make_thumbnail(request: Request, image: ValidatedImage) -> Optional[bytes]:
    processor = request.app.state.image_processor
    try:
        # thumbnail generation is blocking -> run in thread
        return await asyncio.to_thread(processor.create_thumbnail, image.data)
    except ValueError as exc:
        LOGGER.warning("Thumbnail generation failed: %s", exc)
        return None


async def _require_patient(request: Request, user_id: str, patient_id: str) -> None:
    try:
        patient = await PatientDAL(request.app.state.db_initializer).get_patient(user_id, patient_id)
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    if patient is None:
        raise HTTPException(status_code=404, detail=f"Patient with ID {patient_id} not found")


async def run_analysis(
    request: Request,
    image_payload: Optional[str],
    context_payload: Optional[Dict[str, Any]],
    user_id: str,
    patient_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Validate the image, classify it, and optionally store the analysis for a patient.

    Args:
        request: FastAPI Request (used to access app.state for shared services).
        image_payload: Data URI or bare base64 image.
        context_payload: Optional histopathological data from the form.
        user_id: Caller identity.
        patient_id: When given, the result is persisted for this patient.

    Returns:
        The serialized `ClassificationResult`, plus `analysisId` when stored.

    Raises:
        HTTPException: 400 for invalid images, 404 for unknown patients, 409
            for duplicate in-flight submissions, 502 when analysis is unavailable.
    """
    config = request.app.state.config
    service: ScreeningService = request.app.state.screening_service

    try:
        image = validate_image_payload(image_payload, max_bytes=config.max_image_bytes)
    except InvalidImageError as exc:
        LOGGER.info("Rejected image: %s", exc.reason)
        raise invalid_image(exc) from exc

    if patient_id:
        await _require_patient(request, user_id, patient_id)

    context = PatientContext.from_payload(context_payload)

    try:
        result = await service.analyze(image, context)
    except AnalysisInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except AnalysisUnavailableError as exc:
        raise HTTPException(
            status_code=502,
            detail={"error": "Analysis unavailable", "details": "The classification service could not be reached."},
        ) from exc

    body = result.to_dict()
    if patient_id:
        record = AnalysisRecord(
            id=None,
            user_id=user_id,
            patient_id=patient_id,
            result=result,
            scan_id=result.scan_id,
            status="fallback" if result.fallback else "completed",
            thumbnail=await _make_thumbnail(request, image),
        )
        try:
            stored = await AnalysisDAL(request.app.state.db_initializer).create_analysis(record)
        except aiosqlite.Error as exc:
            raise database_error(exc) from exc
        body["analysisId"] = stored.id
    return body


async def create_analysis(
    request: Request,
    user_id: str,
    patient_id: str,
    result_payload: Dict[str, Any],
    image_url: str = "",
    status: Optional[str] = None,
    scan_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Store an analysis result produced earlier by `run_analysis`.

    Raises:
        HTTPException(404) if the patient does not exist for this user.
    """
    await _require_patient(request, user_id, patient_id)
    result = ClassificationResult.from_dict(result_payload)
    record = AnalysisRecord(
        id=None,
        user_id=user_id,
        patient_id=patient_id,
        result=result,
        image_url=image_url,
        scan_id=scan_id or result.scan_id,
        status=status or ("fallback" if result.fallback else "completed"),
    )
    try:
        stored = await AnalysisDAL(request.app.state.db_initializer).create_analysis(record)
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    return stored.to_dict()


async def list_analyses(
    request: Request,
    user_id: str,
    patient_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    try:
        records = await AnalysisDAL(request.app.state.db_initializer).list_analyses(
            user_id, patient_id=patient_id, limit=limit, offset=offset
        )
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    return [r.to_dict() for r in records]


async def _require_analysis(request: Request, user_id: str, analysis_id: str) -> AnalysisRecord:
    try:
        record = await AnalysisDAL(request.app.state.db_initializer).get_analysis(user_id, analysis_id)
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return record


async def get_analysis(request: Request, user_id: str, analysis_id: str) -> Dict[str, Any]:
    record = await _require_analysis(request, user_id, analysis_id)
    return record.to_dict()


async def get_analysis_by_scan(request: Request, user_id: str, scan_id: str) -> Dict[str, Any]:
    try:
        record = await AnalysisDAL(request.app.state.db_initializer).get_by_scan_id(user_id, scan_id)
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    if record is None:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return record.to_dict()


async def delete_analysis(request: Request, user_id: str, analysis_id: str) -> Dict[str, Any]:
    try:
        deleted = await AnalysisDAL(request.app.state.db_initializer).delete_analysis(user_id, analysis_id)
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail="Analysis not found")
    return {"id": analysis_id, "deleted": True}


async def get_thumbnail(request: Request, user_id: str, analysis_id: str) -> Response:
    """Return the stored PNG thumbnail for an analysis.

    Raises:
        HTTPException(404) if the analysis or its thumbnail is not found.
    """
    record = await _require_analysis(request, user_id, analysis_id)
    if not record.thumbnail:
        raise HTTPException(status_code=404, detail="Thumbnail not available for this analysis")
    return Response(content=record.thumbnail, media_type="image/png")
