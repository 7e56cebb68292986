"""Screening classification result types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

RISK_LEVELS = ("low", "medium", "high")
SEVERITIES = ("low", "moderate", "high")
# risk-level spellings models sometimes use for a finding severity
_SEVERITY_ALIASES = {"medium": "moderate"}


@dataclass
class Finding:
    """A single structured observation attributed to a screening response."""

    type: str
    description: str
    severity: str = "low"

    def to_dict(self) -> Dict[str, str]:
        return {"type": self.type, "description": self.description, "severity": self.severity}

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_severity: str = "low") -> "Finding":
        """Build a finding, using `default_severity` when the given one is missing or unknown."""
        severity = str(data.get("severity") or "").strip().lower()
        severity = _SEVERITY_ALIASES.get(severity, severity)
        return cls(
            type=str(data.get("type") or "Observation"),
            description=str(data.get("description") or ""),
            severity=severity if severity in SEVERITIES else default_severity,
        )


@dataclass
class ClassificationResult:
    """Interpreted outcome of one screening request.

    Attributes:
        risk: One of `RISK_LEVELS`.
        confidence: Score in [0, 1].
        analysis: Human-readable analysis text.
        findings: Structured observations.
        recommendations: Next steps for the patient.
        scan_id: Provider reference for the request.
        raw_analysis: Model output verbatim.
        cached: True when served from the result cache.
        fallback: True when synthesised because the provider call failed.
    """

    risk: str
    confidence: float
    analysis: str
    findings: List[Finding] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    scan_id: Optional[str] = None
    raw_analysis: str = ""
    cached: bool = False
    fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the camelCase keys the front end reads."""
        return {
            "analysis": self.analysis,
            "risk": self.risk,
            "confidence": self.confidence,
            "rawAnalysis": self.raw_analysis,
            "scanId": self.scan_id,
            "findings": [f.to_dict() for f in self.findings],
            "recommendations": list(self.recommendations),
            "cached": self.cached,
            "fallback": self.fallback,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClassificationResult":
        risk = str(data.get("risk") or "low").lower()
        try:
            confidence = float(data.get("confidence", 0.0))
        except (TypeError, ValueError):
            confidence = 0.0
        return cls(
            risk=risk if risk in RISK_LEVELS else "low",
            confidence=min(max(confidence, 0.0), 1.0),
            analysis=str(data.get("analysis") or ""),
            findings=[Finding.from_dict(f) for f in data.get("findings") or [] if isinstance(f, dict)],
            recommendations=[str(r) for r in data.get("recommendations") or []],
            scan_id=data.get("scanId") or data.get("scan_id"),
            raw_analysis=str(data.get("rawAnalysis") or data.get("raw_analysis") or ""),
            cached=bool(data.get("cached", False)),
            fallback=bool(data.get("fallback", False)),
        )
