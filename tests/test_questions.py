"""
Question orchestrator tests.

Covers:
- option list normalization (strip "other", truncate, regenerate, pad)
- failure modes surfacing as GenerationError
- progress / readiness fields per phase
- prompt contents
- the Groq client wrapper mapping upstream failures
"""

import httpx
import pytest
from langchain_core.messages import AIMessage, HumanMessage

from assessment.errors import GenerationError, InputValidationError
from assessment.llm import GroqCompletionClient, parse_json_content
from assessment.models import Phase
from assessment.questions import PLACEHOLDER_OPTIONS, QuestionOrchestrator

from conftest import FakeCompletionClient


def payload(text="How severe is the pain?", options=None):
    if options is None:
        options = ["Mild", "Moderate", "Strong", "Very strong", "Worst ever"]
    return {"questions": [{"text": text, "options": options}]}


def generate(client, responses=(), phase=Phase.INITIAL, **kwargs):
    orchestrator = QuestionOrchestrator(client, **kwargs)
    return orchestrator.generate_next_questions("I am feeling...", "Pain", list(responses), phase)


# ============================================================================
# Option normalization
# ============================================================================

class TestOptions:

    def test_exactly_five_plus_other(self):
        client = FakeCompletionClient([payload()])
        batch = generate(client)

        assert batch.questions[0].options == ["Mild", "Moderate", "Strong", "Very strong", "Worst ever", "Other"]
        assert len(client.calls) == 1

    def test_model_other_entries_are_replaced(self):
        client = FakeCompletionClient([payload(options=["A", "Other (please specify)", "B", "C", "D", "E"])])
        batch = generate(client)

        assert batch.questions[0].options == ["A", "B", "C", "D", "E", "Other"]

    def test_truncates_to_five(self):
        client = FakeCompletionClient([payload(options=["A", "B", "C", "D", "E", "F", "G"])])
        batch = generate(client)

        assert batch.questions[0].options == ["A", "B", "C", "D", "E", "Other"]

    def test_regenerates_missing_options(self):
        client = FakeCompletionClient([
            payload(options=["A", "B", "C"]),
            {"options": ["D", "E"]},
        ])
        batch = generate(client)

        assert batch.questions[0].options == ["A", "B", "C", "D", "E", "Other"]
        assert len(client.calls) == 2
        assert "additional answer options" in client.prompts()[1]

    def test_failed_regeneration_pads(self):
        client = FakeCompletionClient([
            payload(options=["A", "B", "C"]),
            GenerationError("Invalid JSON response from language model"),
        ])
        batch = generate(client)

        assert batch.questions[0].options == ["A", "B", "C"] + PLACEHOLDER_OPTIONS[:2] + ["Other"]

    def test_short_regeneration_pads_remainder(self):
        client = FakeCompletionClient([
            payload(options=["A", "B"]),
            {"options": ["C", "A"]},
        ])
        batch = generate(client)

        assert batch.questions[0].options == ["A", "B", "C"] + PLACEHOLDER_OPTIONS[:2] + ["Other"]

    def test_pad_policy_makes_no_extra_call(self):
        client = FakeCompletionClient([payload(options=[])])
        batch = generate(client, fill_policy="pad")

        assert batch.questions[0].options == PLACEHOLDER_OPTIONS + ["Other"]
        assert len(client.calls) == 1

    def test_unknown_fill_policy(self):
        with pytest.raises(ValueError):
            QuestionOrchestrator(FakeCompletionClient(), fill_policy="guess")


# ============================================================================
# Failure modes
# ============================================================================

class TestFailures:

    def test_missing_questions_array(self):
        client = FakeCompletionClient([{"question": "Where?"}])
        with pytest.raises(GenerationError):
            generate(client)

    def test_non_object_payload(self):
        client = FakeCompletionClient([["Where?"]])
        with pytest.raises(GenerationError):
            generate(client)

    def test_no_usable_questions(self):
        client = FakeCompletionClient([{"questions": [{"options": ["A"]}, "Where?"]}])
        with pytest.raises(GenerationError):
            generate(client)

    def test_upstream_failure_propagates(self):
        client = FakeCompletionClient([GenerationError("Empty response from language model")])
        with pytest.raises(GenerationError) as exc:
            generate(client)
        assert exc.value.detail == "Empty response from language model"

    @pytest.mark.parametrize("category,symptom", [("", "Pain"), ("I am feeling...", ""), (None, None)])
    def test_missing_inputs(self, category, symptom):
        client = FakeCompletionClient([payload()])
        orchestrator = QuestionOrchestrator(client)
        with pytest.raises(InputValidationError):
            orchestrator.generate_next_questions(category, symptom, [], Phase.INITIAL)
        assert client.calls == []


class TestParseJsonContent:

    def test_strips_fences(self):
        assert parse_json_content('```json\n{"a": 1}\n```') == {"a": 1}

    @pytest.mark.parametrize("content", [None, "", "   "])
    def test_empty(self, content):
        with pytest.raises(GenerationError):
            parse_json_content(content)

    def test_not_json(self):
        with pytest.raises(GenerationError):
            parse_json_content("Sure! Here is your question.")


# ============================================================================
# Progress + readiness
# ============================================================================

class TestPhaseFields:

    def test_initial_progress(self, scenario_a):
        client = FakeCompletionClient([payload()])
        batch = generate(client, scenario_a[:2])

        assert batch.total_predicted_questions == 5
        assert batch.current_question_number == 3
        assert batch.ready_for_diagnosis is False
        assert batch.assessed_areas is not None
        assert batch.assessed_areas.uncovered() == ["characterSeverity", "timing"]

    def test_initial_never_ready(self, scenario_a):
        batch = generate(FakeCompletionClient([payload()]), scenario_a)
        assert batch.ready_for_diagnosis is False

    def test_detailed_ready(self, scenario_a):
        batch = generate(FakeCompletionClient([payload()]), scenario_a, phase=Phase.DETAILED)

        assert batch.ready_for_diagnosis is True
        assert batch.assessed_areas is None
        assert batch.total_predicted_questions == 10
        assert batch.current_question_number == 8

    def test_detailed_contradiction_not_ready(self, scenario_b):
        batch = generate(FakeCompletionClient([payload()]), scenario_b, phase=Phase.DETAILED)
        assert batch.ready_for_diagnosis is False

    def test_model_readiness_is_ignored(self, scenario_a):
        data = payload()
        data["readyForDiagnosis"] = True
        batch = generate(FakeCompletionClient([data]), scenario_a[:3], phase=Phase.DETAILED)
        assert batch.ready_for_diagnosis is False


class TestPrompt:

    def test_initial_prompt(self, scenario_a):
        client = FakeCompletionClient([payload()])
        generate(client, scenario_a[:2])

        messages = client.calls[0]
        assert len(messages) == 1 + 2 + 2
        assert "Phase 1 (Initial Assessment)" in messages[0].content
        assert "Where is the pain located?" in messages[0].content
        assert messages[1].content == "Question: Where is the pain located?\nAnswer: Forehead"
        assert messages[-2].content == "Category: I am feeling...\nSymptom: Pain"
        assert messages[-1].content.endswith("characterSeverity, timing")

    def test_detailed_prompt(self, scenario_a):
        client = FakeCompletionClient([payload()])
        generate(client, scenario_a, phase=Phase.DETAILED)

        system = client.calls[0][0].content
        assert "Phase 2 (Detailed Assessment)" in system
        assert "Ready for diagnosis: true" in system
        assert "contradictions" in system


# ============================================================================
# Groq client wrapper
# ============================================================================

class StubChatModel:
    """Replaces the bound ChatGroq runnable: returns `content` or raises `error`."""

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def invoke(self, messages):
        self.calls.append(messages)
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.content)


def groq_client(stub):
    client = GroqCompletionClient("gsk-test-key")
    client.llm = stub
    return client


class TestGroqCompletionClient:

    def test_missing_key(self):
        with pytest.raises(RuntimeError):
            GroqCompletionClient("")

    def test_timeout_becomes_generation_error(self):
        client = groq_client(StubChatModel(error=httpx.ReadTimeout("timed out")))

        with pytest.raises(GenerationError) as exc:
            client.complete_json([HumanMessage(content="Where?")])
        assert exc.value.detail == "Language model request failed: timed out"

    def test_any_upstream_failure_becomes_generation_error(self):
        client = groq_client(StubChatModel(error=ConnectionError("connection reset")))
        with pytest.raises(GenerationError, match="connection reset"):
            client.complete_json([HumanMessage(content="Where?")])

    def test_empty_content(self):
        client = groq_client(StubChatModel(content=""))

        with pytest.raises(GenerationError) as exc:
            client.complete_json([HumanMessage(content="Where?")])
        assert exc.value.detail == "Empty response from language model"

    def test_fenced_json(self):
        stub = StubChatModel(content='```json\n{"questions": []}\n```')
        client = groq_client(stub)

        assert client.complete_json([HumanMessage(content="Where?")]) == {"questions": []}
        assert stub.calls[0][0].content == "Where?"

    def test_drives_the_orchestrator(self):
        client = groq_client(StubChatModel(content='{"questions": [{"text": "Where?", "options": ["A", "B", "C", "D", "E"]}]}'))
        batch = generate(client)
        assert batch.questions[0].options == ["A", "B", "C", "D", "E", "Other"]
