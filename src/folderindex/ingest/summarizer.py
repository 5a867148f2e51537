"""Document summarizer: replace a snippet with a searchable prose summary.

Used when ``preferences.embed_summaries`` is on: each document is
summarized by the chat model and the summary is embedded instead of the raw
content. A failed or empty summary falls back to the document content
(non-fatal).
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from folderindex.embed.documents import Document
from folderindex.ingest.base import CHARS_PER_TOKEN
from folderindex.llm_client import ChatClient

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = """\
You are a code documentation assistant. Your task is to generate concise, \
searchable summaries of code snippets that will be used for semantic search.

Guidelines:
- Leave out details that are also true of other snippets in the same file; \
mention the high-level purpose and focus on what makes this snippet distinct.
- Describe WHAT the code does and, at a high level, HOW (for example the \
names of algorithms implemented).
- Include key function, class and variable names.
- Mention the purpose, example use cases and similar tasks the code may be used for.
- Keep summaries to fewer than 200 words.
- Use natural language that a developer might search for, with relevant keywords.
- Do not include code syntax in the summary.

Respond with ONLY the summary, no additional text or formatting."""


@dataclass
class SummaryBatch:
    summaries: list[str]
    tokens_output: int


def summary_prompt(doc: Document) -> str:
    return "\n".join(
        [
            f"File: {doc.relative_path}",
            f"Format: {doc.format}",
            "",
            "Content:",
            "```",
            doc.original_content,
            "```",
        ]
    )


class DocumentSummarizer:
    """Summarize documents one by one with a chat capability.

    Args:
        chat: Chat client used for every summary call.
    """

    def __init__(self, chat: ChatClient) -> None:
        self._chat = chat

    async def summarize_batch(self, documents: list[Document]) -> SummaryBatch:
        """Return one summary per document, in order, plus output tokens used.

        Output tokens come from the provider's usage report when present,
        else ``ceil(len(summary) / 4)``.
        """
        summaries: list[str] = []
        tokens = 0
        for doc in documents:
            try:
                result = await self._chat.invoke(
                    [
                        {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                        {"role": "user", "content": summary_prompt(doc)},
                    ]
                )
            except Exception as exc:
                logger.warning(
                    "Failed to summarize %s, using original content: %s", doc.relative_path, exc
                )
                summaries.append(doc.content)
                continue

            summary = result.content.strip()
            summaries.append(summary or doc.content)
            if result.output_tokens is not None:
                tokens += result.output_tokens
            elif summary:
                tokens += math.ceil(len(summary) / CHARS_PER_TOKEN)
        return SummaryBatch(summaries=summaries, tokens_output=tokens)
