"""
llm.py — the completion seam between the engine and the Groq chat model.

The engine only needs "send messages, get a JSON document back or fail".
`CompletionClient` is that contract; `GroqCompletionClient` implements it
with langchain_groq. Tests pass their own object with the same method.
"""

import json
import re
import logging
from typing import Any, List, Optional, Protocol

from langchain_core.messages import BaseMessage
from langchain_groq import ChatGroq

from assessment import config
from assessment.errors import GenerationError

logger = logging.getLogger(__name__)


class CompletionClient(Protocol):
    def complete_json(self, messages: List[BaseMessage]) -> Any:
        ...


def _strip_json_fences(text: str) -> str:
    text = re.sub(r"^```(?:json)?\s*", "", text.strip())
    text = re.sub(r"\s*```$", "", text.strip())
    return text.strip()


def parse_json_content(content: Optional[str]) -> Any:
    """Decode a completion body, mapping empty or non-JSON text to GenerationError."""
    if content is None or not str(content).strip():
        raise GenerationError("Empty response from language model")
    try:
        return json.loads(_strip_json_fences(str(content)))
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse model output: {str(content)[:200]!r}")
        raise GenerationError("Invalid JSON response from language model") from e


class GroqCompletionClient:
    """ChatGroq in JSON-object mode, no retries, bounded by a request timeout."""

    def __init__(
        self,
        groq_api_key: str,
        model:        str   = config.GROQ_MODEL,
        temperature:  float = config.LLM_TEMPERATURE,
        timeout:      float = config.LLM_TIMEOUT_SECONDS,
    ):
        if not groq_api_key:
            raise RuntimeError("GROQ_API_KEY is not set.")
        self.model   = model
        self.timeout = timeout
        self.llm = ChatGroq(
            model=model,
            temperature=temperature,
            api_key=groq_api_key,
            timeout=timeout,
            max_retries=0,
        ).bind(response_format={"type": "json_object"})

    def complete_json(self, messages: List[BaseMessage]) -> Any:
        try:
            content = self.llm.invoke(messages).content
        except Exception as e:
            logger.error(f"Groq completion failed ({self.model}): {e}")
            raise GenerationError(f"Language model request failed: {e}") from e
        return parse_json_content(content)
