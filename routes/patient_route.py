"""FastAPI routes for patient records."""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import AliasChoices, BaseModel, Field

from controllers.patient_controller import (
    create_patient,
    delete_patient,
    get_patient,
    list_patients,
    update_patient,
)
from routes.dependencies import current_user_id

router = APIRouter(prefix="/api/patients", tags=["patients"])


def _alias(name: str, camel: str):
    return Field(default=None, validation_alias=AliasChoices(name, camel))


class PatientFields(BaseModel):
    name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    tobacco: Optional[str] = None
    smoking: Optional[str] = None
    pan_masala: Optional[str] = _alias("pan_masala", "panMasala")
    symptom_duration: Optional[str] = _alias("symptom_duration", "symptomDuration")
    pain_level: Optional[str] = _alias("pain_level", "painLevel")
    difficulty_swallowing: Optional[str] = _alias("difficulty_swallowing", "difficultySwallowing")
    weight_loss: Optional[str] = _alias("weight_loss", "weightLoss")
    family_history: Optional[str] = _alias("family_history", "familyHistory")
    immune_compromised: Optional[str] = _alias("immune_compromised", "immuneCompromised")
    persistent_sore_throat: Optional[str] = _alias("persistent_sore_throat", "persistentSoreThroat")
    voice_changes: Optional[str] = _alias("voice_changes", "voiceChanges")
    lumps_in_neck: Optional[str] = _alias("lumps_in_neck", "lumpsInNeck")
    frequent_mouth_sores: Optional[str] = _alias("frequent_mouth_sores", "frequentMouthSores")
    poor_dental_hygiene: Optional[str] = _alias("poor_dental_hygiene", "poorDentalHygiene")


class PatientCreate(PatientFields):
    patient_id: str = Field(validation_alias=AliasChoices("patient_id", "patientId"))
    name: str


class PatientUpdate(PatientFields):
    patient_id: Optional[str] = _alias("patient_id", "patientId")


@router.get("")
async def list_patients_route(
    request: Request, limit: int = 100, offset: int = 0, user_id: str = Depends(current_user_id)
):
    return await list_patients(request, user_id, limit=limit, offset=offset)


@router.post("", status_code=201)
async def create_patient_route(request: Request, payload: PatientCreate, user_id: str = Depends(current_user_id)):
    return await create_patient(request, user_id, payload.model_dump())


@router.get("/{patient_id}")
async def get_patient_route(request: Request, patient_id: str, user_id: str = Depends(current_user_id)):
    return await get_patient(request, user_id, patient_id)


@router.put("/{patient_id}")
async def update_patient_route(
    request: Request, patient_id: str, payload: PatientUpdate, user_id: str = Depends(current_user_id)
):
    return await update_patient(request, user_id, patient_id, payload.model_dump(exclude_none=True))


@router.delete("/{patient_id}")
async def delete_patient_route(request: Request, patient_id: str, user_id: str = Depends(current_user_id)):
    return await delete_patient(request, user_id, patient_id)
