"""Patient record controllers."""

from __future__ import annotations

from typing import Any, Dict, List

import aiosqlite
from fastapi import HTTPException, Request

from controllers.analysis_controller import database_error
from dal.patient_dal import PatientDAL
from models.patient_context import normalize_answer
from models.patient_record import PatientRecord

_ANSWER_FIELDS = (
    "tobacco",
    "smoking",
    "pan_masala",
    "difficulty_swallowing",
    "weight_loss",
    "family_history",
    "immune_compromised",
    "persistent_sore_throat",
    "voice_changes",
    "lumps_in_neck",
    "frequent_mouth_sores",
    "poor_dental_hygiene",
)


def _normalize(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: normalize_answer(value) if key in _ANSWER_FIELDS else value
        for key, value in fields.items()
    }


def _dal(request: Request) -> PatientDAL:
    return PatientDAL(request.app.state.db_initializer)


async def create_patient(request: Request, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """Create a patient owned by `user_id`.

    Raises:
        HTTPException(409) if the patient id is already used by this user.
    """
    patient_id = (fields.get("patient_id") or "").strip()
    if not patient_id:
        raise HTTPException(status_code=400, detail="Patient ID is required")

    values = _normalize(fields)
    values["patient_id"] = patient_id
    record = PatientRecord(id=None, user_id=user_id, **values)
    try:
        created = await _dal(request).create_patient(record)
    except aiosqlite.IntegrityError as exc:
        raise HTTPException(status_code=409, detail=f"Patient with ID {patient_id} already exists") from exc
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    return created.to_dict()


async def list_patients(request: Request, user_id: str, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
    try:
        records = await _dal(request).list_patients(user_id, limit=limit, offset=offset)
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    return [r.to_dict() for r in records]


async def get_patient(request: Request, user_id: str, patient_id: str) -> Dict[str, Any]:
    if not patient_id.strip():
        raise HTTPException(status_code=400, detail="Patient ID is required")
    try:
        record = await _dal(request).get_patient(user_id, patient_id)
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    if record is None:
        raise HTTPException(status_code=404, detail=f"Patient with ID {patient_id} not found")
    return record.to_dict()


async def update_patient(request: Request, user_id: str, patient_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Update a patient; a new `patient_id` renames them along with their analyses.

    Raises:
        HTTPException(409) if the new patient id is already used by this user.
    """
    values = _normalize(changes)
    if "patient_id" in values:
        values["patient_id"] = str(values["patient_id"]).strip()
        if not values["patient_id"]:
            raise HTTPException(status_code=400, detail="Patient ID is required")
    try:
        record = await _dal(request).update_patient(user_id, patient_id, **values)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except aiosqlite.IntegrityError as exc:
        raise HTTPException(status_code=409, detail="Patient ID already in use") from exc
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    if record is None:
        raise HTTPException(status_code=404, detail=f"Patient with ID {patient_id} not found")
    return record.to_dict()


async def delete_patient(request: Request, user_id: str, patient_id: str) -> Dict[str, Any]:
    try:
        deleted = await _dal(request).delete_patient(user_id, patient_id)
    except aiosqlite.Error as exc:
        raise database_error(exc) from exc
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Patient with ID {patient_id} not found")
    return {"patient_id": patient_id, "deleted": True}
