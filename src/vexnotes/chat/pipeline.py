"""Retrieval-augmented question answering over the note index.

Steps:
1) Rewrite the question into search terms (falls back to the question).
2) Retrieve the top-K chunks from the vector index.
3) Assemble the chunks into a grounding context.
4) Ask the completion provider for an answer grounded in that context.
"""

from __future__ import annotations

import logging
from typing import List

from vexnotes.chat.completion import ChatProvider
from vexnotes.errors import AnswerSynthesisError, ValidationError, VexError
from vexnotes.index.vector_index import VectorIndex
from vexnotes.models import Answer, QueryResult

LOGGER = logging.getLogger(__name__)

DEFAULT_TOP_K = 4

QUERY_OPTIMIZATION_PROMPT = """You are a search query optimizer. Your job is to take a user's question and convert it into the best possible search terms for a vector database containing notes and documentation.

Rules:
- Focus on key concepts, not question words
- Remove filler words like "how", "what", "can you", etc.
- Include synonyms and related terms
- Keep it concise but comprehensive
- Return only the optimized search terms, no explanation

Convert this user question into optimized search terms:"""

ANSWER_PROMPT = """You are a helpful assistant that answers questions using the provided knowledge base information.

Instructions:
- Use only the provided context to answer the user's question
- If the context contains relevant information, use it to provide a comprehensive answer
- If the context doesn't contain enough information, say so clearly
- Be accurate and don't make up information not present in the context
- Format your response clearly and helpfully
- You should always specify specific documents if possible
- If you are going to use math equations, write them as $${math}$$ for display or ${math}$ inline so the formatting is rendered correctly

Context:
"""

NO_CONTEXT = "No relevant information found in the knowledge base."


def build_context(results: List[QueryResult]) -> str:
    """Create an enumerated context block, best match first."""
    if not results:
        return NO_CONTEXT
    blocks = ["Relevant information from the knowledge base:\n"]
    for i, result in enumerate(results, start=1):
        source = result.metadata.get("source_path", "")
        header = f"--- Document {i} ---"
        if source:
            header += f" ({source})"
        blocks.append(f"{header}\n{result.text}\n")
    return "\n".join(blocks)


class QueryPipeline:
    def __init__(
        self,
        index: VectorIndex,
        chat: ChatProvider,
        *,
        top_k: int = DEFAULT_TOP_K,
        timeout: float | None = None,
    ) -> None:
        self.index = index
        self.chat = chat
        self.top_k = top_k
        self.timeout = timeout

    def rewrite(self, question: str) -> str:
        """Turn a question into search terms, or return it unchanged on failure."""
        try:
            optimized = self.chat.complete(
                question, system=QUERY_OPTIMIZATION_PROMPT, timeout=self.timeout
            )
        except VexError as exc:
            LOGGER.warning("Query rewrite failed, using the question verbatim: %s", exc)
            return question
        return optimized.strip() or question

    def retrieve(self, question: str, k: int | None = None) -> List[QueryResult]:
        if not question or not question.strip():
            raise ValidationError("query cannot be empty")
        return self.index.query_by_text(question, k or self.top_k)

    def answer(self, question: str) -> Answer:
        if not question or not question.strip():
            raise ValidationError("query cannot be empty")

        optimized = self.rewrite(question)
        LOGGER.debug("Optimized query: %s", optimized)

        results = self.index.query_by_text(optimized, self.top_k)
        LOGGER.info("Retrieved %d chunk(s) for query", len(results))
        context = build_context(results)

        try:
            response = self.chat.complete(
                question, system=ANSWER_PROMPT + context, timeout=self.timeout
            )
        except VexError as exc:
            LOGGER.error("Answer synthesis failed: %s", exc)
            raise AnswerSynthesisError(f"failed to generate answer: {exc}") from exc

        sources = list(
            dict.fromkeys(
                r.metadata["source_path"] for r in results if r.metadata.get("source_path")
            )
        )
        return Answer(query=question, answer=response, sources=sources)
