"""FastAPI routes for oral screening and stored analyses."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import AliasChoices, BaseModel, Field

from controllers.analysis_controller import (
    create_analysis,
    delete_analysis,
    get_analysis,
    get_analysis_by_scan,
    get_thumbnail,
    list_analyses,
    run_analysis,
)
from routes.dependencies import current_user_id

router = APIRouter(prefix="/api", tags=["analysis"])


class AnalyzeRequest(BaseModel):
    image: Optional[str] = None
    histopathological_data: Optional[Dict[str, Any]] = Field(
        default=None, validation_alias=AliasChoices("histopathologicalData", "histopathological_data")
    )
    patient_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("patientId", "patient_id"))


class AnalysisCreateRequest(BaseModel):
    patient_id: str = Field(validation_alias=AliasChoices("patientId", "patient_id"))
    result: Dict[str, Any]
    image_url: str = ""
    status: Optional[str] = None
    scan_id: Optional[str] = Field(default=None, validation_alias=AliasChoices("scanId", "scan_id"))


@router.post("/analyze", summary="Screen an oral cavity image")
async def analyze(request: Request, payload: AnalyzeRequest, user_id: str = Depends(current_user_id)):
    """Classify the image and return risk, confidence, findings, and recommendations."""
    try:
        return await run_analysis(
            request,
            payload.image,
            payload.histopathological_data,
            user_id,
            patient_id=payload.patient_id,
        )
    except HTTPException:
        raise
    except Exception as exc:
        raise HTTPException(status_code=500, detail={"error": "Failed to analyze image", "details": str(exc)})


@router.get("/analyses")
async def list_analyses_route(
    request: Request,
    patient_id: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
    user_id: str = Depends(current_user_id),
):
    return await list_analyses(request, user_id, patient_id=patient_id, limit=limit, offset=offset)


@router.post("/analyses", status_code=201)
async def create_analysis_route(
    request: Request, payload: AnalysisCreateRequest, user_id: str = Depends(current_user_id)
):
    return await create_analysis(
        request,
        user_id,
        payload.patient_id,
        payload.result,
        image_url=payload.image_url,
        status=payload.status,
        scan_id=payload.scan_id,
    )


@router.get("/analyses/scan/{scan_id}")
async def get_analysis_by_scan_route(request: Request, scan_id: str, user_id: str = Depends(current_user_id)):
    return await get_analysis_by_scan(request, user_id, scan_id)


@router.get("/analyses/{analysis_id}")
async def get_analysis_route(request: Request, analysis_id: str, user_id: str = Depends(current_user_id)):
    return await get_analysis(request, user_id, analysis_id)


@router.delete("/analyses/{analysis_id}")
async def delete_analysis_route(request: Request, analysis_id: str, user_id: str = Depends(current_user_id)):
    return await delete_analysis(request, user_id, analysis_id)


@router.get("/analyses/{analysis_id}/thumbnail")
async def get_thumbnail_route(request: Request, analysis_id: str, user_id: str = Depends(current_user_id)):
    """Return the PNG thumbnail bytes for the specified analysis."""
    return await get_thumbnail(request, user_id, analysis_id)
