from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class PatientRecord:
    """In-memory representation of a row in the PATIENT table.

    Attributes:
        id: Primary key (uuid hex string, None for new records).
        user_id: Owner of the record (the clinician account).
        patient_id: Clinic-facing identifier, unique per user.
        name: Patient display name.
        age: Age in years.
        gender: Free-form gender.
        tobacco, smoking, pan_masala: Substance-use answers (Yes/No/Former).
        symptom_duration: Duration of symptoms in months.
        pain_level: None/Mild/Moderate/Severe.
        The remaining symptom fields hold Yes/No/Unknown answers.
        created_at: ISO-8601 UTC timestamp of insertion.
        updated_at: ISO-8601 UTC timestamp of the last update.
    """

    id: Optional[str]
    user_id: str
    patient_id: str
    name: str
    age: Optional[int] = None
    gender: Optional[str] = None
    tobacco: Optional[str] = None
    smoking: Optional[str] = None
    pan_masala: Optional[str] = None
    symptom_duration: Optional[str] = None
    pain_level: Optional[str] = None
    difficulty_swallowing: Optional[str] = None
    weight_loss: Optional[str] = None
    family_history: Optional[str] = None
    immune_compromised: Optional[str] = None
    persistent_sore_throat: Optional[str] = None
    voice_changes: Optional[str] = None
    lumps_in_neck: Optional[str] = None
    frequent_mouth_sores: Optional[str] = None
    poor_dental_hygiene: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
