"""
LLM Gateway — Chat model • Streaming relay • Proposal synthesis
===============================================================

Purpose
-------
Everything that talks to the OpenAI-compatible model gateway:
- Build the LangChain `ChatOpenAI` client from settings
- Convert a stored message log into LangChain messages
- Relay a streamed answer to the browser while a detached task mirrors it
  into the message log (`StreamRelay`)
- Run the non-streamed proposal synthesis (`synthesize_proposal`)

Error contract
--------------
Upstream failures are classified once (`orcabot.errors.classify_upstream_error`):
429 → `UpstreamRateLimited`, 402 → `UpstreamQuotaExceeded`, anything else →
`UpstreamError`. Nothing is retried.

Streaming frames
----------------
``data: {"response": "<delta>", "status": 200}\\n\\n`` per chunk, then
``data: [DONE]\\n\\n``. A failure after the first chunk produces one
``data: {"error": "...", "status": 500}\\n\\n`` frame instead of ``[DONE]``.
"""

import asyncio
import json
import logging
from typing import AsyncIterator, Callable, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from orcabot.database.config.config import settings
from orcabot.errors import UpstreamError, classify_upstream_error

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()
"""Strong references to detached save tasks until they finish."""

_END = object()
_FAILED = object()


def build_chat_model() -> ChatOpenAI:
    """
    Create the chat client used for both conversation and synthesis.

    Returns
    -------
    ChatOpenAI
        Configured with `settings.LLM_MODEL`, `settings.API_KEY`,
        `settings.LLM_BASE_URL` and no automatic retries.
    """
    return ChatOpenAI(
        model=settings.LLM_MODEL,
        api_key=settings.API_KEY,
        base_url=settings.LLM_BASE_URL,
        temperature=settings.LLM_TEMPERATURE,
        max_retries=0,
    )


def lc_text_from_content(content) -> str:
    """Normalize LangChain message content to plain text.

    - If string → return as-is.
    - If list of content parts → concatenates only 'text' parts.
    - Else → str(content).
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(p.get("text", "") for p in content if isinstance(p, dict) and p.get("type") == "text")
    return str(content)


def to_langchain_messages(system_prompt: str, log: list[dict], closing_instruction: Optional[str] = None) -> list[BaseMessage]:
    """
    Build the model input from a system prompt and a stored message log.

    The log is replayed in the given order, one message per row, so the
    conversation the model sees is exactly what the database holds.
    """
    messages: list[BaseMessage] = [SystemMessage(content=system_prompt)]
    for row in log:
        if row["role"] == "assistant":
            messages.append(AIMessage(content=row["content"]))
        else:
            messages.append(HumanMessage(content=row["content"]))
    if closing_instruction:
        messages.append(HumanMessage(content=closing_instruction))
    return messages


def sse_frame(payload) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


class StreamRelay:
    """
    Fan-out of one upstream token stream to the HTTP response and the message log.

    `open()` pulls the first chunk before anything is sent to the client, so
    rate-limit and quota errors can still become proper HTTP statuses.
    `start()` then spawns a detached task that drains the upstream stream into
    a queue read by `client_stream()` and, once the stream completes, calls
    `on_complete(full_text)` in a worker thread. The task is independent of
    the client: a disconnect stops the frames, not the save. Save failures
    are logged and dropped.
    """

    def __init__(self, upstream: AsyncIterator, first_text: str, on_complete: Callable[[str], None]):
        self._upstream = upstream
        self._first_text = first_text
        self._on_complete = on_complete
        self._queue: asyncio.Queue = asyncio.Queue()
        self._parts: list[str] = []
        self.task: Optional[asyncio.Task] = None
        self.saved = False

    @classmethod
    async def open(cls, model: BaseChatModel, messages: list[BaseMessage], on_complete: Callable[[str], None]) -> "StreamRelay":
        """
        Start the upstream call and wait for its first chunk.

        Raises
        ------
        UpstreamError
            (or a subclass) when the gateway rejects the call.
        """
        upstream = model.astream(messages).__aiter__()
        try:
            first = await upstream.__anext__()
            first_text = lc_text_from_content(first.content)
        except StopAsyncIteration:
            first_text = None
        except Exception as e:
            logger.error(f"LLM gateway rejected the chat call: {e}")
            raise classify_upstream_error(e) from e
        return cls(upstream, first_text, on_complete)

    def start(self) -> asyncio.Task:
        self.task = asyncio.create_task(self._pump())
        _background_tasks.add(self.task)
        self.task.add_done_callback(_background_tasks.discard)
        return self.task

    @property
    def text(self) -> str:
        return "".join(self._parts)

    async def _pump(self) -> None:
        failed = False
        try:
            if self._first_text is not None:
                if self._first_text:
                    self._parts.append(self._first_text)
                    await self._queue.put(self._first_text)
                async for chunk in self._upstream:
                    text = lc_text_from_content(chunk.content)
                    if text:
                        self._parts.append(text)
                        await self._queue.put(text)
        except Exception as e:
            failed = True
            logger.error(f"LLM stream failed after {len(self._parts)} chunks: {e}")
            await self._queue.put(_FAILED)
        else:
            await self._queue.put(_END)

        if failed or not self.text.strip():
            return
        try:
            await asyncio.to_thread(self._on_complete, self.text)
            self.saved = True
        except Exception as e:
            logger.error(f"Failed to persist assistant reply ({len(self.text)} chars): {e}")

    async def client_stream(self) -> AsyncIterator[str]:
        """SSE frames for the HTTP response."""
        while True:
            item = await self._queue.get()
            if item is _END:
                yield "data: [DONE]\n\n"
                return
            if item is _FAILED:
                yield sse_frame({"error": UpstreamError.detail, "status": 500})
                return
            yield sse_frame({"response": item, "status": 200})


async def synthesize_proposal(model: BaseChatModel, messages: list[BaseMessage]) -> str:
    """
    Ask the model for the commercial proposal (non-streamed).

    Returns
    -------
    str
        The model text, verbatim.

    Raises
    ------
    UpstreamError
        (or a subclass) on gateway failure or an empty answer.
    """
    try:
        response = await model.ainvoke(messages)
    except Exception as e:
        logger.error(f"LLM gateway rejected the synthesis call: {e}")
        raise classify_upstream_error(e) from e
    text = lc_text_from_content(response.content).strip()
    if not text:
        raise UpstreamError("O modelo não retornou conteúdo para a proposta.")
    return text
