"""
models.py — typed records shared by the engine, the API and the CLI.

Wire names follow the questionnaire's JSON (camelCase); Python attributes
are snake_case. Every model accepts either spelling on input.
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from assessment.errors import InputValidationError


class Phase(str, Enum):
    INITIAL    = "initial"
    DETAILED   = "detailed"
    DIAGNOSING = "diagnosing"
    COMPLETE   = "complete"


class AreaTag(str, Enum):
    LOCATION           = "location"
    CHARACTER_SEVERITY = "characterSeverity"
    TIMING             = "timing"
    TRIGGERS           = "triggers"
    RISK_FACTORS       = "riskFactors"


class Urgency(str, Enum):
    LOW    = "low"
    MEDIUM = "medium"
    HIGH   = "high"


class _Record(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ══════════════════════════════════════════════════════════════════════════════
#  QUESTIONS + RESPONSES
# ══════════════════════════════════════════════════════════════════════════════

class QuestionData(_Record):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    text:    str
    options: List[str]

    @field_validator("options")
    @classmethod
    def _options_not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("options must not be empty")
        return v


class QuestionResponse(_Record):
    """One answered question. Immutable once stored."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    question:      str
    answer:        str
    question_data: QuestionData = Field(alias="questionData")

    @field_validator("question")
    @classmethod
    def _question_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("question must not be blank")
        return v


class GeneratedQuestion(_Record):
    text:    str
    options: List[str] = Field(default_factory=list)

    def to_question_data(self) -> QuestionData:
        return QuestionData(text=self.text, options=list(self.options))


class AssessmentAreas(_Record):
    location:           bool = False
    character_severity: bool = Field(False, alias="characterSeverity")
    timing:             bool = False
    triggers:           bool = False
    risk_factors:       bool = Field(False, alias="riskFactors")

    def get(self, tag: AreaTag) -> bool:
        return self.as_dict()[tag.value]

    def as_dict(self) -> Dict[str, bool]:
        return self.model_dump(by_alias=True)

    def covered_count(self) -> int:
        return sum(1 for v in self.as_dict().values() if v)

    def uncovered(self) -> List[str]:
        return [k for k, v in self.as_dict().items() if not v]


class QuestionBatch(_Record):
    questions:                 List[GeneratedQuestion]
    assessed_areas:            Optional[AssessmentAreas] = Field(None, alias="assessedAreas")
    total_predicted_questions: int  = Field(0, alias="totalPredictedQuestions")
    current_question_number:   int  = Field(0, alias="currentQuestionNumber")
    ready_for_diagnosis:       bool = Field(False, alias="readyForDiagnosis")


ContradictionCategory = Literal["timing", "severity", "frequency", "improvement"]


class Contradiction(_Record):
    category:  ContradictionCategory
    response1: QuestionResponse
    response2: QuestionResponse


# ══════════════════════════════════════════════════════════════════════════════
#  DIAGNOSIS
# ══════════════════════════════════════════════════════════════════════════════

class ReferenceProfile(_Record):
    condition: str
    responses: List[QuestionResponse]
    vector:    List[float]


class Recommendation(_Record):
    text:    str
    urgency: Urgency


class DiagnosisMatch(_Record):
    condition:       str
    similarity:      float
    confidence:      int
    recommendations: List[Recommendation] = Field(default_factory=list)


# ══════════════════════════════════════════════════════════════════════════════
#  SESSION
# ══════════════════════════════════════════════════════════════════════════════

class SessionState(_Record):
    category:                  Optional[str]           = None
    symptom:                   Optional[str]           = None
    responses:                 List[QuestionResponse]  = Field(default_factory=list)
    phase:                     Phase                   = Phase.INITIAL
    pending_questions:         List[GeneratedQuestion] = Field(default_factory=list)
    current_question_index:    int                     = 0
    total_predicted_questions: int                     = 0
    current_question_number:   int                     = 0
    last_diagnosis:            Optional[List[DiagnosisMatch]] = None


# ══════════════════════════════════════════════════════════════════════════════
#  VALIDATION HELPERS
# ══════════════════════════════════════════════════════════════════════════════

def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "record"
    return f"{loc}: {err.get('msg', 'invalid value')}"


def parse_response(raw: Any, index: int = 0) -> QuestionResponse:
    if isinstance(raw, QuestionResponse):
        return raw
    if not isinstance(raw, dict):
        raise InputValidationError(f"responses[{index}] must be an object")
    try:
        return QuestionResponse.model_validate(raw)
    except ValidationError as e:
        raise InputValidationError(f"responses[{index}].{_first_error(e)}") from e


def parse_responses(raw: Any) -> List[QuestionResponse]:
    """Validate an untyped responses array, failing on the first bad record."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InputValidationError("responses must be an array")
    return [parse_response(r, i) for i, r in enumerate(raw)]
