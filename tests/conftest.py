"""Shared fixtures: a scripted completion client and sample transcripts."""

import threading
from typing import Callable, List, Optional

import pytest

from assessment.models import QuestionData, QuestionResponse


class FakeCompletionClient:
    """
    Stands in for the Groq client.

    Either pops scripted replies in order (an Exception reply is raised), or
    delegates to `handler(messages)` when one is given.
    """

    def __init__(self, replies: Optional[list] = None, handler: Optional[Callable] = None):
        self.replies = list(replies or [])
        self.handler = handler
        self.calls: List[list] = []
        self._lock = threading.Lock()

    def complete_json(self, messages):
        with self._lock:
            self.calls.append(messages)
            if self.handler is None:
                reply = self.replies.pop(0)
        if self.handler is not None:
            reply = self.handler(messages)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def prompts(self) -> List[str]:
        return [m[0].content for m in self.calls]


def make_response(question: str, answer: str, options: Optional[List[str]] = None) -> QuestionResponse:
    options = options or [answer, "Option B", "Option C", "Option D", "Option E", "Other"]
    return QuestionResponse(
        question=question,
        answer=answer,
        question_data=QuestionData(text=question, options=options),
    )


# Covers all five areas with at least two questions each and no opposing answers.
SCENARIO_A = [
    ("Where is the pain located?",                                   "Forehead"),
    ("Is there a previous medical condition affecting this side?",  "Yes, migraines"),
    ("How severe is the pain?",                                      "Moderate"),
    ("What type of sensation do you feel?",                          "Throbbing"),
    ("When did the symptoms start?",                                 "Two days ago"),
    ("How long does each episode last?",                             "About an hour"),
    ("What makes the pain worse?",                                   "Bright light"),
    ("Do you have a family history of migraines?",                   "Yes, my mother"),
]


@pytest.fixture
def scenario_a() -> List[QuestionResponse]:
    return [make_response(q, a) for q, a in SCENARIO_A]


@pytest.fixture
def scenario_b() -> List[QuestionResponse]:
    answers = dict(enumerate(a for _, a in SCENARIO_A))
    answers[4] = "It just started"
    answers[5] = "It's chronic"
    return [make_response(q, answers[i]) for i, (q, _) in enumerate(SCENARIO_A)]


@pytest.fixture
def fake_client() -> FakeCompletionClient:
    return FakeCompletionClient()
