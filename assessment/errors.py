"""Exception types raised by the assessment engine."""


class AssessmentError(Exception):
    """Base class. `detail` is the human-readable reason shown to callers."""

    kind = "assessment_error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class InputValidationError(AssessmentError):
    """Missing category/symptom or a malformed response record."""

    kind = "invalid_input"


class GenerationError(AssessmentError):
    """The question-generation completion returned unusable content or failed."""

    kind = "generation_failed"


class ProfileError(AssessmentError):
    """Reference profiles or recommendations could not be produced."""

    kind = "profile_failed"


class PhaseError(AssessmentError):
    """Operation is not allowed in the session's current phase."""

    kind = "invalid_phase"
