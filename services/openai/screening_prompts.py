"""Prompt builders for oral cavity screening."""

from typing import Optional

from models.patient_context import PatientContext


def build_system_prompt() -> str:
    """Return the system prompt for the screening model."""
    return (
        "You are an expert oral pathologist analyzing oral cavity images for signs of oral cancer. "
        "Your primary duty is to avoid false positives and unnecessary anxiety, while never "
        "downplaying concerning features. Complete the visual assessment before considering "
        "any patient risk factors.\n\n"
        "HIGH RISK indicators (if ANY are present, classify as HIGH RISK): ulcers or lesions that "
        "don't heal; red or white patches with irregular borders; unexplained bleeding; hard lumps "
        "or thickening of tissue; visible tissue destruction; mixed red and white areas.\n"
        "MEDIUM RISK indicators: persistent white or red patches with regular borders; mild swelling "
        "without ulceration; texture changes without other symptoms; minor color variations.\n"
        "LOW RISK indicators: normal, pink, uniform, moist tissue; symmetrical appearance; no ulcers, "
        "patches, or unexplained swelling.\n\n"
        "State the result on its own line as exactly one of "
        '"RISK LEVEL: HIGH", "RISK LEVEL: MEDIUM" or "RISK LEVEL: LOW", then return this JSON:\n'
        "{\n"
        '  "visual_assessment": {\n'
        '    "mucosal_features": "normal/abnormal",\n'
        '    "surface_texture": "normal/abnormal",\n'
        '    "symmetry": "normal/abnormal",\n'
        '    "vascularity": "normal/abnormal",\n'
        '    "objective_findings": ["list ONLY what you see"]\n'
        "  },\n"
        '  "classification": {\n'
        '    "overall_appearance": "normal/abnormal",\n'
        '    "risk_level": "low/medium/high",\n'
        '    "confidence": 0.0,\n'
        '    "visual_evidence": ["specific abnormalities if any"]\n'
        "  },\n"
        '  "recommendations": ["preventive if normal", "diagnostic if abnormal"]\n'
        "}\n"
        "Unless you see clear abnormalities, keep the assessment LOW. Do not escalate risk based on "
        "habits alone."
    )


def build_user_prompt(context: Optional[PatientContext]) -> str:
    """Return the user prompt, embedding patient context as plain text when available."""
    prompt = "Analyze this oral cavity image for signs of oral cancer."
    if context is None or context.is_empty():
        return prompt + " No patient information was provided."
    lines = [prompt, "", "Patient Information:"]
    lines.extend(context.to_prompt_lines())
    lines.append("")
    lines.append("Correlate the visual findings with these risk factors only after the visual assessment.")
    return "\n".join(lines)
