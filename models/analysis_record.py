from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from models.classification import ClassificationResult


@dataclass
class AnalysisRecord:
    """In-memory representation of a row in the ANALYSIS table.

    Attributes:
        id: Primary key (uuid hex string, None for new records).
        user_id: Owner of the record.
        patient_id: Clinic-facing patient identifier the analysis belongs to.
        image_url: Reference to the stored image, empty when not uploaded.
        scan_id: Provider reference returned with the classification.
        result: Interpreted classification, stored as JSON.
        status: `completed` or `fallback`.
        thumbnail: Optional PNG thumbnail bytes.
        created_at: ISO-8601 UTC timestamp of insertion.
    """

    id: Optional[str]
    user_id: str
    patient_id: str
    result: ClassificationResult
    image_url: str = ""
    scan_id: Optional[str] = None
    status: str = "completed"
    thumbnail: Optional[bytes] = None
    created_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses; the thumbnail is served separately."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "patientId": self.patient_id,
            "image_url": self.image_url,
            "scanId": self.scan_id,
            "result": self.result.to_dict(),
            "status": self.status,
            "created_at": self.created_at,
            "has_thumbnail": bool(self.thumbnail),
        }
