"""Patient context attached to a screening request."""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional

# snake_case field -> camelCase alias sent by the front end
_ALIASES = {
    "pan_masala": "panMasala",
    "symptom_duration": "symptomDuration",
    "pain_level": "painLevel",
    "difficulty_swallowing": "difficultySwallowing",
    "weight_loss": "weightLoss",
    "family_history": "familyHistory",
    "immune_compromised": "immuneCompromised",
    "persistent_sore_throat": "persistentSoreThroat",
    "voice_changes": "voiceChanges",
    "lumps_in_neck": "lumpsInNeck",
    "frequent_mouth_sores": "frequentMouthSores",
    "poor_dental_hygiene": "poorDentalHygiene",
}

SYMPTOM_LABELS = (
    ("difficulty_swallowing", "Difficulty Swallowing"),
    ("weight_loss", "Weight Loss"),
    ("family_history", "Family History"),
    ("immune_compromised", "Immune Compromised"),
    ("persistent_sore_throat", "Persistent Sore Throat"),
    ("voice_changes", "Voice Changes"),
    ("lumps_in_neck", "Lumps in Neck"),
    ("frequent_mouth_sores", "Frequent Mouth Sores"),
    ("poor_dental_hygiene", "Poor Dental Hygiene"),
)


def normalize_answer(value: Any) -> Optional[str]:
    """Map free-form yes/no answers onto `Yes`/`No`, keeping other answers as given."""
    if value is None:
        return None
    if isinstance(value, bool):
        return "Yes" if value else "No"
    text = str(value).strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in ("yes", "y", "true"):
        return "Yes"
    if lowered in ("no", "n", "false"):
        return "No"
    return text[:1].upper() + text[1:]


@dataclass(frozen=True)
class PatientContext:
    """Histopathological and lifestyle data sent alongside an image."""

    age: Optional[str] = None
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

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> Optional["PatientContext"]:
        """Build a context from a request dict using snake_case or camelCase keys."""
        if not payload:
            return None
        values: Dict[str, Optional[str]] = {}
        for f in fields(cls):
            raw = payload.get(f.name)
            if raw is None and f.name in _ALIASES:
                raw = payload.get(_ALIASES[f.name])
            if f.name in ("age", "symptom_duration"):
                values[f.name] = str(raw).strip() if raw is not None and str(raw).strip() else None
            else:
                values[f.name] = normalize_answer(raw)
        return cls(**values)

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_prompt_lines(self) -> List[str]:
        """Render the context as plain-text prompt lines."""
        na = "Not provided"
        lines = [
            f"- Age: {self.age + ' years' if self.age else na}",
            "- Substance Use:",
            f"  * Tobacco: {self.tobacco or na}",
            f"  * Smoking: {self.smoking or na}",
            f"  * Pan Masala: {self.pan_masala or na}",
            f"- Symptom Duration: {self.symptom_duration + ' months' if self.symptom_duration else na}",
            f"- Pain Level: {self.pain_level or na}",
            "- Other Symptoms:",
        ]
        lines.extend(f"  * {label}: {getattr(self, name) or na}" for name, label in SYMPTOM_LABELS)
        return lines
