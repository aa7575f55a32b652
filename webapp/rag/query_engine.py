"""Answer generation over retrieved tabs.

The LLM grounds its answer on numbered tab context blocks. When no provider is
configured, or the call fails for any reason, a deterministic templated answer
built from the top result is returned instead, so a search never fails because
of the language model.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from schemas.records import QueryResult
from webapp.rag.prompts import (
    ANSWER_SYSTEM,
    ANSWER_USER,
    CONTEXT_BLOCK,
    CONTEXT_HEADER,
    NO_PREVIEW,
    NO_RESULTS_ANSWER,
    SUMMARY_SYSTEM,
    SUMMARY_USER,
)

logger = logging.getLogger(__name__)

MAX_SOURCES = 3
ANSWER_TEMPERATURE = 0.3
ANSWER_MAX_TOKENS = 500
SUMMARY_MAX_TOKENS = 100
SUMMARY_INPUT_CHARS = 4000
MOCK_SNIPPET_CHARS = 100


class LLMUnavailableError(RuntimeError):
    """No language model is configured for the selected provider."""


class LLMClient:
    """Async chat client for OpenAI or Anthropic."""

    def __init__(
        self,
        provider: str = "openai",
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client=None,
    ):
        self.provider = provider
        self.timeout = timeout

        if provider == "anthropic":
            self.model = model or "claude-haiku-4-5-20251001"
            if client is None and api_key:
                import anthropic
                client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)
        elif provider == "openai":
            self.model = model or "gpt-4o-mini"
            if client is None and api_key:
                from openai import AsyncOpenAI
                client = AsyncOpenAI(api_key=api_key, timeout=timeout)
        else:
            raise ValueError(f"Unsupported provider: {provider}")

        self.client = client
        if client is None:
            logger.warning("No API key for %s, answers will use the templated fallback", provider)

    @classmethod
    def from_settings(cls, settings) -> "LLMClient":
        model = settings.anthropic_model if settings.llm_provider == "anthropic" else settings.openai_completion_model
        return cls(
            provider=settings.llm_provider,
            model=model,
            api_key=settings.llm_api_key,
            timeout=settings.llm_timeout_seconds,
        )

    @property
    def available(self) -> bool:
        return self.client is not None

    async def chat(
        self,
        system: str,
        user: str,
        temperature: float = 0.2,
        max_tokens: int = 1024,
        model: Optional[str] = None,
    ) -> str:
        """Send a single-turn chat request and return the reply text."""
        if self.client is None:
            raise LLMUnavailableError(f"{self.provider} is not configured")

        model = model or self.model
        if self.provider == "anthropic":
            request = self.client.messages.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
            response = await asyncio.wait_for(request, timeout=self.timeout)
            text = "".join(block.text for block in response.content if getattr(block, "type", "") == "text")
        else:
            request = self.client.chat.completions.create(
                model=model,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
            response = await asyncio.wait_for(request, timeout=self.timeout)
            text = response.choices[0].message.content or ""

        text = text.strip()
        if not text:
            raise RuntimeError(f"Empty completion from {self.provider}")
        return text


@dataclass
class Answer:
    """Answer text plus the tabs it cites."""
    query: str
    answer_text: str
    sources: list[QueryResult] = field(default_factory=list)
    generated: bool = False  # False when the templated fallback was used


def format_context(results: list[QueryResult]) -> str:
    """Render results as numbered tab blocks for the prompt."""
    context = CONTEXT_HEADER
    for i, result in enumerate(results, 1):
        context += CONTEXT_BLOCK.format(
            index=i,
            title=result.title,
            body=result.snippet or result.summary or NO_PREVIEW,
            url=result.url,
        )
    return context


def mock_answer(query: str, results: list[QueryResult]) -> str:
    if not results:
        return NO_RESULTS_ANSWER

    top = results[0]
    answer = f'Based on the information in your tabs, I found {len(results)} relevant results about "{query}". '
    answer += f'The most relevant tab is "{top.title}". '
    if top.snippet:
        answer += f'Here\'s what I found: "{top.snippet[:MOCK_SNIPPET_CHARS]}..." '
    if len(results) > 1:
        answer += f"You can also check {len(results) - 1} other tabs for more information."
    return answer.strip()


class AnswerEngine:
    """Turns ranked search results into an answer with cited source tabs."""

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        summary_model: Optional[str] = None,
        max_sources: int = MAX_SOURCES,
    ):
        self.llm = llm
        self.summary_model = summary_model
        self.max_sources = max_sources

    @classmethod
    def from_settings(cls, settings, llm: Optional[LLMClient] = None) -> "AnswerEngine":
        llm = llm or LLMClient.from_settings(settings)
        summary_model = settings.openai_summary_model if llm.provider == "openai" else None
        return cls(llm=llm, summary_model=summary_model)

    @property
    def llm_available(self) -> bool:
        return self.llm is not None and self.llm.available

    async def answer(self, query: str, results: list[QueryResult]) -> Answer:
        if not results:
            return Answer(query=query, answer_text=NO_RESULTS_ANSWER)

        sources = list(results[: self.max_sources])
        if not self.llm_available:
            return Answer(query=query, answer_text=mock_answer(query, results), sources=sources)

        logger.info("Generating answer for '%s' from %d tabs", query, len(results))
        user = ANSWER_USER.format(context=format_context(results), query=query)
        try:
            text = await self.llm.chat(
                ANSWER_SYSTEM, user,
                temperature=ANSWER_TEMPERATURE,
                max_tokens=ANSWER_MAX_TOKENS,
            )
        except Exception as e:
            logger.warning("Answer generation failed, using templated answer: %s", e)
            return Answer(query=query, answer_text=mock_answer(query, results), sources=sources)

        return Answer(query=query, answer_text=text, sources=sources, generated=True)

    async def summarize(self, text: str, title: str) -> str:
        """One or two sentence summary of a tab. Raises when the LLM is unavailable or fails."""
        if not self.llm_available:
            raise LLMUnavailableError("No language model configured for summaries")

        logger.info("Generating summary for '%s' (%d chars)", title, len(text))
        return await self.llm.chat(
            SUMMARY_SYSTEM,
            SUMMARY_USER.format(title=title, content=text[:SUMMARY_INPUT_CHARS]),
            temperature=ANSWER_TEMPERATURE,
            max_tokens=SUMMARY_MAX_TOKENS,
            model=self.summary_model,
        )
