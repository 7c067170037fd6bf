"""
Record validation: untyped transcripts coming in over HTTP.
"""

import pytest
from pydantic import ValidationError

from assessment.errors import InputValidationError
from assessment.models import (
    AreaTag,
    AssessmentAreas,
    Contradiction,
    QuestionResponse,
    parse_responses,
)

from conftest import make_response


def raw(question="Where is the pain located?", answer="Forehead", options=None):
    return {
        "question": question,
        "answer": answer,
        "questionData": {"text": question, "options": options or ["Forehead", "Temples", "Other"]},
    }


class TestParseResponses:

    def test_valid(self):
        parsed = parse_responses([raw(), raw("How severe is the pain?", "Mild")])

        assert [r.answer for r in parsed] == ["Forehead", "Mild"]
        assert parsed[0].question_data.options == ["Forehead", "Temples", "Other"]

    def test_none_is_empty(self):
        assert parse_responses(None) == []

    def test_accepts_records(self):
        r = make_response("Where?", "Forehead")
        assert parse_responses([r]) == [r]

    def test_not_a_list(self):
        with pytest.raises(InputValidationError, match="must be an array"):
            parse_responses({"question": "Where?"})

    def test_not_an_object(self):
        with pytest.raises(InputValidationError, match=r"responses\[1\] must be an object"):
            parse_responses([raw(), "Forehead"])

    @pytest.mark.parametrize("broken,field", [
        ({"question": "   "}, "question"),
        ({"answer": None}, "answer"),
        ({"questionData": {"text": "Where?", "options": []}}, "questionData.options"),
        ({"questionData": "Where?"}, "questionData"),
    ])
    def test_first_bad_field_is_named(self, broken, field):
        record = {**raw(), **broken}
        with pytest.raises(InputValidationError) as exc:
            parse_responses([raw(), record])
        assert exc.value.detail.startswith(f"responses[1].{field}")


class TestRecords:

    def test_response_is_immutable(self):
        r = make_response("Where?", "Forehead")
        with pytest.raises(ValidationError):
            r.answer = "Temples"

    def test_snake_case_names_accepted(self):
        r = QuestionResponse(
            question="Where?",
            answer="Forehead",
            question_data={"text": "Where?", "options": ["Forehead"]},
        )
        assert r.model_dump(by_alias=True)["questionData"]["text"] == "Where?"

    def test_areas_by_tag(self):
        areas = AssessmentAreas(location=True, riskFactors=True)

        assert areas.get(AreaTag.LOCATION) is True
        assert areas.get(AreaTag.TIMING) is False
        assert areas.covered_count() == 2
        assert areas.uncovered() == ["characterSeverity", "timing", "triggers"]

    @pytest.mark.parametrize("category", ["timing", "severity", "frequency", "improvement"])
    def test_contradiction_categories(self, category):
        c = Contradiction(
            category=category,
            response1=make_response("When did it start?", "It just started"),
            response2=make_response("How long?", "Years"),
        )
        assert c.category == category

    def test_contradiction_rejects_unknown_category(self):
        with pytest.raises(ValidationError):
            Contradiction(
                category="mood",
                response1=make_response("How do you feel?", "Happy"),
                response2=make_response("How do you feel now?", "Sad"),
            )
