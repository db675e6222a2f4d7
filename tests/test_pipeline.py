"""Tests for the question answering pipeline."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import httpx
import pytest

from vexnotes.chat.completion import OpenAIChat
from vexnotes.chat.pipeline import (
    ANSWER_PROMPT,
    NO_CONTEXT,
    QUERY_OPTIMIZATION_PROMPT,
    QueryPipeline,
    build_context,
)
from vexnotes.errors import AnswerSynthesisError, ProviderError, ValidationError
from vexnotes.models import QueryResult, VectorRecord


def _result(text: str, source: str) -> QueryResult:
    return QueryResult(id=source, text=text, metadata={"source_path": source}, score=0.5)


@pytest.fixture
def sky_index(index, embedder):
    text = "The sky is blue."
    index.upsert(
        VectorRecord(
            id="sky-0", text=text, embedding=embedder.embed(text), metadata={"source_path": "sky.md"}
        )
    )
    return index


class TestBuildContext:
    """Test build_context function."""

    def test_no_results(self) -> None:
        assert build_context([]) == NO_CONTEXT

    def test_enumerates_documents(self) -> None:
        context = build_context([_result("First", "a.md"), _result("Second", "b.md")])

        assert "--- Document 1 --- (a.md)\nFirst" in context
        assert "--- Document 2 --- (b.md)\nSecond" in context
        assert context.index("Document 1") < context.index("Document 2")


class TestQueryPipeline:
    """Test QueryPipeline.answer and helpers."""

    def test_answer_grounded_in_notes(self, sky_index) -> None:
        chat = MagicMock()
        chat.complete.side_effect = ["sky colour", "The sky is blue."]
        pipeline = QueryPipeline(sky_index, chat)

        answer = pipeline.answer("What color is the sky?")

        assert answer.answer == "The sky is blue."
        assert answer.sources == ["sky.md"]
        rewrite_call, answer_call = chat.complete.call_args_list
        assert rewrite_call.kwargs["system"] == QUERY_OPTIMIZATION_PROMPT
        assert answer_call.args[0] == "What color is the sky?"
        assert answer_call.kwargs["system"].startswith(ANSWER_PROMPT)
        assert "The sky is blue." in answer_call.kwargs["system"]

    def test_empty_question(self, sky_index) -> None:
        with pytest.raises(ValidationError):
            QueryPipeline(sky_index, MagicMock()).answer("  ")

    def test_rewrite_failure_falls_back(self, sky_index) -> None:
        chat = MagicMock()
        chat.complete.side_effect = [ProviderError("down"), "Blue."]
        pipeline = QueryPipeline(sky_index, chat)

        assert pipeline.answer("sky?").answer == "Blue."

    def test_blank_rewrite_falls_back(self, sky_index) -> None:
        chat = MagicMock()
        chat.complete.return_value = "   "
        assert QueryPipeline(sky_index, chat).rewrite("original") == "original"

    def test_empty_index_uses_marker(self, index) -> None:
        chat = MagicMock()
        chat.complete.side_effect = ["terms", "I don't know."]

        answer = QueryPipeline(index, chat).answer("Anything?")

        assert answer.sources == []
        assert chat.complete.call_args.kwargs["system"] == ANSWER_PROMPT + NO_CONTEXT

    def test_synthesis_failure(self, sky_index) -> None:
        chat = MagicMock()
        chat.complete.side_effect = ["terms", ProviderError("overloaded", status_code=503)]

        with pytest.raises(AnswerSynthesisError, match="overloaded"):
            QueryPipeline(sky_index, chat).answer("sky?")

    def test_retrieve_uses_default_top_k(self, sky_index) -> None:
        results = QueryPipeline(sky_index, MagicMock(), top_k=4).retrieve("sky")
        assert [r.id for r in results] == ["sky-0"]

    def test_garbled_rewrite_reply_falls_back(self, sky_index) -> None:
        """A malformed provider reply during rewrite degrades to the raw question."""
        replies = iter(
            [
                {"choices": ["garbled"]},
                {"choices": [{"message": {"content": "The sky is blue."}}]},
            ]
        )
        prompts = []

        def handler(request: httpx.Request) -> httpx.Response:
            prompts.append(json.loads(request.content)["messages"])
            return httpx.Response(200, json=next(replies))

        chat = OpenAIChat("sk-test", client=httpx.Client(transport=httpx.MockTransport(handler)))

        answer = QueryPipeline(sky_index, chat).answer("sky?")

        assert answer.answer == "The sky is blue."
        assert answer.sources == ["sky.md"]
        assert prompts[1][-1] == {"role": "user", "content": "sky?"}
