"""Turn a model's screening answer into a `ClassificationResult`.

The model is asked for a JSON assessment but frequently answers in prose, so
interpretation combines three sources, strongest first:

1. structured findings from an embedded JSON object,
2. an explicit ``RISK LEVEL: <level>`` statement in the text,
3. keyword counts over the text.

Everything here is pure: no I/O, no clock, no globals that change.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from models.classification import ClassificationResult, Finding

LOGGER = logging.getLogger(__name__)

HIGH_RISK_INDICATORS = (
    "ulcer",
    "lesion",
    "irregular border",
    "bleeding",
    "hard lump",
    "tissue destruction",
    "concerning",
    "suspicious",
    "immediate attention",
    "urgent",
    "severe",
)

MEDIUM_RISK_INDICATORS = (
    "persistent",
    "mild swelling",
    "texture change",
    "minor variation",
    "follow-up needed",
    "monitor",
)

CERTAINTY_WORDS = ("clearly", "definitely", "certainly", "obvious")
HEDGING_WORDS = ("possibly", "might", "may", "unclear")

BASE_CONFIDENCE = 0.7
CONFIDENCE_STEP = 0.2
HIGH_FINDING_CONFIDENCE = 0.99
MODERATE_FINDING_CONFIDENCE = 0.85
NORMAL_FINDING_CONFIDENCE = 0.95
FALLBACK_CONFIDENCE = 0.5

NORMAL_ANALYSIS = (
    "Normal oral cavity appearance with healthy mucosal features. "
    "No concerning lesions or abnormalities visible."
)
FALLBACK_ANALYSIS = (
    "Automated analysis is currently unavailable. This default result was not "
    "produced from the image and should be reviewed by a clinician."
)

URGENT_RECOMMENDATIONS = (
    "Immediate consultation with an oral pathologist",
    "Biopsy and further diagnostic imaging as needed",
    "Avoid all risk factors (e.g., tobacco, smoking)",
)
FOLLOW_UP_RECOMMENDATIONS = (
    "Consult with a dental professional",
    "Monitor the affected area closely",
    "Maintain excellent oral hygiene practices",
)
PREVENTIVE_RECOMMENDATIONS = (
    "Maintain regular oral hygiene practices",
    "Continue routine dental check-ups",
    "Practice good oral health habits",
    "Monitor for any changes in appearance",
)
FALLBACK_RECOMMENDATIONS = PREVENTIVE_RECOMMENDATIONS + (
    "Repeat the screening later or consult a dental professional",
)

DEFAULT_RECOMMENDATIONS = {
    "high": URGENT_RECOMMENDATIONS,
    "medium": FOLLOW_UP_RECOMMENDATIONS,
    "low": PREVENTIVE_RECOMMENDATIONS,
}

_RISK_TO_SEVERITY = {"high": "high", "medium": "moderate", "moderate": "moderate", "low": "low"}

_EXPLICIT_RISK_PATTERNS = (
    ("high", "risk level: high"),
    ("medium", "risk level: medium"),
    ("low", "risk level: low"),
)

_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_CERTAINTY_RE = re.compile(r"\b(?:" + "|".join(CERTAINTY_WORDS) + r")\b")
_HEDGING_RE = re.compile(r"\b(?:" + "|".join(HEDGING_WORDS) + r")\b")


def clamp_confidence(value: float) -> float:
    """Clamp a confidence score to [0, 1]."""
    return round(min(max(float(value), 0.0), 1.0), 4)


def extract_structured(text: str) -> Optional[Dict[str, Any]]:
    """Return the JSON object embedded in `text`, or None.

    The outermost brace pair is taken, so a single JSON document surrounded by
    prose is recovered. Unparseable JSON is logged and ignored.
    """
    if not text:
        return None
    match = _JSON_OBJECT_RE.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        LOGGER.warning("Failed to parse embedded analysis JSON: %s", exc)
        return None
    return parsed if isinstance(parsed, dict) else None


def explicit_risk(text: str) -> Optional[str]:
    """Return the risk named by a ``risk level: ...`` statement, checked high first."""
    lowered = (text or "").lower()
    for risk, pattern in _EXPLICIT_RISK_PATTERNS:
        if pattern in lowered:
            return risk
    return None


def count_indicators(text: str) -> Tuple[int, int]:
    """Return how many high and medium risk indicators occur in `text`."""
    lowered = (text or "").lower()
    high = sum(1 for term in HIGH_RISK_INDICATORS if term in lowered)
    medium = sum(1 for term in MEDIUM_RISK_INDICATORS if term in lowered)
    return high, medium


def keyword_risk(text: str) -> str:
    """Classify by keyword presence: any high hit wins, then any medium hit."""
    high, medium = count_indicators(text)
    if high > 0:
        return "high"
    if medium > 0:
        return "medium"
    return "low"


def text_risk(text: str) -> str:
    """Derive risk from free text; an explicit statement beats keyword counts."""
    return explicit_risk(text) or keyword_risk(text)


def text_confidence(text: str) -> float:
    """Adjust the base confidence for certainty or hedging language.

    Certainty wins when both kinds of wording appear.
    """
    lowered = (text or "").lower()
    confidence = BASE_CONFIDENCE
    if _CERTAINTY_RE.search(lowered):
        confidence += CONFIDENCE_STEP
    elif _HEDGING_RE.search(lowered):
        confidence -= CONFIDENCE_STEP
    return clamp_confidence(confidence)


def _structured_risk(structured: Dict[str, Any]) -> Optional[str]:
    classification = structured.get("classification")
    if not isinstance(classification, dict):
        return None
    level = str(classification.get("risk_level") or "").strip().lower()
    return level if level in ("low", "medium", "high") else None


def _structured_confidence(structured: Dict[str, Any]) -> Optional[float]:
    classification = structured.get("classification")
    if not isinstance(classification, dict):
        return None
    raw = classification.get("confidence")
    if isinstance(raw, bool) or raw is None:
        return None
    try:
        return clamp_confidence(float(raw))
    except (TypeError, ValueError):
        return None


def _structured_findings(structured: Dict[str, Any], default_severity: str) -> List[Finding]:
    assessment = structured.get("visual_assessment")
    if not isinstance(assessment, dict):
        return []
    raw_findings = assessment.get("objective_findings") or []
    if isinstance(raw_findings, str):
        raw_findings = [raw_findings]

    findings: List[Finding] = []
    for item in raw_findings:
        if isinstance(item, dict):
            finding = Finding.from_dict(item, default_severity=default_severity)
        else:
            description = str(item).strip()
            if not description:
                continue
            finding = Finding(type="Observation", description=description, severity=default_severity)
        findings.append(finding)
    return findings


def _structured_recommendations(structured: Dict[str, Any]) -> List[str]:
    recs = structured.get("recommendations")
    if isinstance(recs, str):
        recs = [recs]
    if not isinstance(recs, list):
        return []
    return [str(r).strip() for r in recs if str(r).strip()]


def enforce_findings_consistency(result: ClassificationResult) -> ClassificationResult:
    """Make `risk` agree with the most severe finding.

    Structured findings always win over text heuristics. A result without
    findings is returned unchanged.
    """
    if not result.findings:
        return result

    severities = {f.severity for f in result.findings}
    if "high" in severities:
        result.risk = "high"
        result.confidence = HIGH_FINDING_CONFIDENCE
        result.recommendations = list(URGENT_RECOMMENDATIONS)
    elif "moderate" in severities:
        result.risk = "medium"
        result.confidence = MODERATE_FINDING_CONFIDENCE
        result.recommendations = list(FOLLOW_UP_RECOMMENDATIONS)
    else:
        result.risk = "low"
        result.confidence = NORMAL_FINDING_CONFIDENCE
        result.analysis = NORMAL_ANALYSIS
        result.recommendations = list(PREVENTIVE_RECOMMENDATIONS)
    return result


def interpret(
    text: str,
    structured: Optional[Dict[str, Any]] = None,
    *,
    scan_id: Optional[str] = None,
) -> ClassificationResult:
    """Interpret a model response into a `ClassificationResult`.

    Args:
        text: Raw model output.
        structured: Already-parsed JSON assessment; extracted from `text` when omitted.
        scan_id: Provider reference to attach to the result.

    Returns:
        A result whose risk is consistent with its findings.
    """
    text = text or ""
    if structured is None:
        structured = extract_structured(text)

    risk = explicit_risk(text)
    confidence = text_confidence(text)
    findings: List[Finding] = []
    recommendations: List[str] = []
    analysis = text

    if structured:
        risk = risk or _structured_risk(structured)
        structured_conf = _structured_confidence(structured)
        if structured_conf is not None:
            confidence = structured_conf
        severity_source = _structured_risk(structured) or risk or keyword_risk(text)
        findings = _structured_findings(structured, _RISK_TO_SEVERITY[severity_source])
        recommendations = _structured_recommendations(structured)
        if findings:
            analysis = "\n".join(f.description for f in findings)

    if risk is None:
        risk = keyword_risk(text)

    result = ClassificationResult(
        risk=risk,
        confidence=confidence,
        analysis=analysis,
        findings=findings,
        recommendations=recommendations or list(DEFAULT_RECOMMENDATIONS[risk]),
        scan_id=scan_id,
        raw_analysis=text,
    )
    result = enforce_findings_consistency(result)
    LOGGER.debug(
        "Interpreted analysis: risk=%s confidence=%.2f findings=%d",
        result.risk,
        result.confidence,
        len(result.findings),
    )
    return result


def fallback_result(scan_id: Optional[str] = None) -> ClassificationResult:
    """Return the default low-risk result used when the provider call fails."""
    return ClassificationResult(
        risk="low",
        confidence=FALLBACK_CONFIDENCE,
        analysis=FALLBACK_ANALYSIS,
        findings=[],
        recommendations=list(FALLBACK_RECOMMENDATIONS),
        scan_id=scan_id,
        raw_analysis="",
        fallback=True,
    )
