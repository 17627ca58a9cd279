"""Streaming answers as a typed event sequence.

:meth:`AnswerStreamCoordinator.stream` is an async generator producing
:class:`~roomrag.models.stream.StreamEvent` objects in a fixed order:

    sources  ->  chunk*  ->  done | error

Exactly one ``sources`` event comes first (``[]`` when context could not be
fetched or there is none), then one ``chunk`` per non-empty LLM fragment,
then exactly one terminal event.  Nothing follows the terminal event.

Cancellation is driven by the consumer: closing the generator (``aclose()``
or dropping it) closes the upstream LLM stream so no further tokens are
requested.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import structlog

from roomrag.interfaces.llm_provider import ILLMProvider
from roomrag.models.rag import AskOptions, RAGQueryResult
from roomrag.models.stream import StreamEvent, StreamEventType
from roomrag.services.rag_service import NO_CONTEXT_ANSWER, RAGService
from roomrag.utils.concurrency import with_timeout
from roomrag.utils.errors import LLMError
from roomrag.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

USER_ERROR_MESSAGE = "Sorry, the answer could not be generated. Please try again."


class AnswerStreamCoordinator:
    """Streams answers produced by a :class:`RAGService`.

    Parameters
    ----------
    rag_service:
        Resolves context, sources and prompt.
    llm:
        Streaming chat provider.  Defaults to the service's own LLM.
    idle_timeout:
        Longest wait in seconds for the next fragment before the stream
        ends with an ``error`` event.
    """

    def __init__(
        self,
        rag_service: RAGService,
        llm: ILLMProvider | None = None,
        idle_timeout: float | None = 60.0,
    ) -> None:
        self._rag = rag_service
        self._llm = llm or rag_service.llm
        self._idle_timeout = idle_timeout

    async def stream(
        self,
        room_id: str,
        org_id: str,
        question: str,
        options: AskOptions | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Yield the event sequence answering *question*."""
        try:
            prepared = await self._rag.prepare(room_id, org_id, question, options)
        except Exception as exc:
            logger.warning("answer_stream_context_failed", room_id=room_id, error=str(exc))
            yield StreamEvent.for_sources([])
            yield StreamEvent.for_error(self._user_error(exc))
            return

        yield StreamEvent.for_sources(
            prepared.sources,
            confidence=prepared.confidence,
            used_semantic_retrieval=prepared.used_semantic_retrieval,
        )
        if prepared.no_context:
            yield StreamEvent.for_done(text=NO_CONTEXT_ANSWER)
            return

        upstream = self._llm.chat_stream(prepared.messages, prepared.llm_config)
        fragments = 0
        failure: Exception | None = None
        try:
            while True:
                try:
                    fragment = await with_timeout(
                        upstream.__anext__(),
                        self._idle_timeout,
                        "chat_stream_fragment",
                        provider_name=self._llm.get_provider_name(),
                    )
                except StopAsyncIteration:
                    break
                if not fragment:
                    continue
                fragments += 1
                yield StreamEvent.for_chunk(fragment)
        except Exception as exc:
            failure = exc
        finally:
            await self._close_upstream(upstream)

        if failure is not None:
            logger.warning(
                "answer_stream_failed",
                room_id=room_id,
                fragments=fragments,
                error=str(failure),
            )
            yield StreamEvent.for_error(self._user_error(failure))
            return

        logger.info("answer_stream_complete", room_id=room_id, fragments=fragments)
        yield StreamEvent.for_done()

    async def collect(
        self,
        room_id: str,
        org_id: str,
        question: str,
        options: AskOptions | None = None,
    ) -> RAGQueryResult:
        """Drain :meth:`stream` into a single result.

        Raises
        ------
        LLMError
            If the stream ends with an ``error`` event.
        """
        parts: list[str] = []
        head: StreamEvent | None = None
        async for event in self.stream(room_id, org_id, question, options):
            if event.type is StreamEventType.SOURCES:
                head = event
            elif event.type is StreamEventType.CHUNK:
                parts.append(event.text)
            elif event.type is StreamEventType.ERROR:
                raise LLMError(message=event.error or USER_ERROR_MESSAGE)
            elif event.text:
                parts.append(event.text)

        return RAGQueryResult(
            answer="".join(parts),
            sources=head.sources if head else [],
            confidence=head.confidence if head else 0.0,
            used_semantic_retrieval=head.used_semantic_retrieval if head else False,
        )

    @staticmethod
    def _user_error(exc: BaseException) -> str:
        return f"{USER_ERROR_MESSAGE} ({type(exc).__name__})"

    @staticmethod
    async def _close_upstream(upstream: AsyncIterator[str]) -> None:
        aclose = getattr(upstream, "aclose", None)
        if aclose is not None:
            await aclose()
