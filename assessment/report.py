"""Plain-text export of a diagnosis, suitable for copying or saving."""

from typing import List, Sequence

from assessment.models import DiagnosisMatch, QuestionResponse


def format_report(match: DiagnosisMatch, responses: Sequence[QuestionResponse] = ()) -> str:
    lines: List[str] = [
        f"Diagnosis: {match.condition}",
        f"Confidence: {match.confidence}%",
        "",
        "Recommendations:",
    ]
    lines += [f"- {rec.text} ({rec.urgency.value})" for rec in match.recommendations]
    lines += ["", "Responses:"]
    lines += [f"Q: {r.question}\nA: {r.answer}" for r in responses]
    return "\n".join(lines)
