"""Room- and organization-wide re-indexing jobs.

Walks the content store page by page and re-indexes every message.  A
failing message never aborts its room and a failing room never aborts the
organization: failures are recorded as human-readable strings and the job
always returns a summary.  Re-running a job converges to the same state
because each message is re-indexed with delete-and-rebuild semantics.

Jobs are cancelled by cancelling the task running them;
``asyncio.CancelledError`` is never caught here.
"""

from __future__ import annotations

import asyncio

import structlog

from roomrag.interfaces.content_store import IContentStore
from roomrag.models.content import Room
from roomrag.models.rag import BulkIndexingResult, IndexingResult
from roomrag.services.ingestion.embedding_indexer import EmbeddingIndexer
from roomrag.services.ingestion.ingestion_service import message_index_request
from roomrag.utils.concurrency import throttled_gather, with_timeout
from roomrag.utils.logging import bind_tenant, get_logger

logger: structlog.BoundLogger = get_logger(__name__)

_MESSAGE_PAGE_SIZE = 100
_ROOM_PAGE_SIZE = 100
_MAX_ERRORS_PER_ROOM = 100
_MAX_ROOM_ERRORS_IN_BATCH = 5


class BulkIndexer:
    """Re-indexes whole rooms and organizations.

    Parameters
    ----------
    indexer:
        Indexes individual messages.
    content_store:
        Paginated source of rooms and messages.
    concurrency:
        How many messages of a page are indexed at once.
    call_timeout:
        Deadline in seconds for each content-store page fetch.
    """

    def __init__(
        self,
        indexer: EmbeddingIndexer,
        content_store: IContentStore,
        concurrency: int = 4,
        call_timeout: float | None = 30.0,
    ) -> None:
        self._indexer = indexer
        self._content_store = content_store
        self._concurrency = max(1, concurrency)
        self._call_timeout = call_timeout

    async def index_room(self, room_id: str, org_id: str) -> IndexingResult:
        """Re-index every message of a room.

        Short messages are counted as ``skipped``.  Per-message failures
        (including timeouts) are recorded as ``"Message <id>: <error>"``; past
        100 recorded errors further failures are only counted in
        ``errors_dropped``.
        Errors fetching a page propagate: the room as a whole has failed.
        """
        with bind_tenant(org_id, room_id):
            return await self._index_room_pages(room_id, org_id)

    async def _index_room_pages(self, room_id: str, org_id: str) -> IndexingResult:
        result = IndexingResult()
        cursor: str | None = None
        semaphore = asyncio.Semaphore(self._concurrency)

        logger.info("room_indexing_started", room_id=room_id, org_id=org_id)
        while True:
            page = await with_timeout(
                self._content_store.list_messages(room_id, cursor=cursor, limit=_MESSAGE_PAGE_SIZE),
                self._call_timeout,
                "list_messages",
            )
            pending = []
            for message in page.items:
                if self._indexer.accepts_short_text(message.content):
                    pending.append(message)
                else:
                    result.skipped += 1

            outcomes = await throttled_gather(
                [self._indexer.index_document(message_index_request(m)) for m in pending],
                semaphore,
            )
            for message, outcome in zip(pending, outcomes, strict=True):
                if isinstance(outcome, Exception):
                    logger.warning(
                        "message_index_failed",
                        room_id=room_id,
                        message_id=message.id,
                        error=str(outcome),
                    )
                    result.record_error(f"Message {message.id}: {outcome}", _MAX_ERRORS_PER_ROOM)
                elif isinstance(outcome, BaseException):
                    raise outcome
                else:
                    result.indexed += 1

            if not page.next_cursor:
                break
            cursor = page.next_cursor

        logger.info(
            "room_indexing_complete",
            room_id=room_id,
            indexed=result.indexed,
            skipped=result.skipped,
            errors=len(result.errors) + result.errors_dropped,
        )
        return result

    async def index_all_rooms(self, org_id: str) -> BulkIndexingResult:
        """Re-index every room of an organization.

        Returns
        -------
        BulkIndexingResult
            Aggregated counters.  At most five errors are carried per room
            and the rest are counted in ``errors_dropped``; a failed room is
            recorded as ``"Room <id>: <error>"``.
        """
        result = BulkIndexingResult()
        rooms = await self._collect_rooms(org_id, result)
        result.total_rooms = len(rooms)

        for room in rooms:
            try:
                room_result = await self.index_room(room.id, org_id)
            except Exception as exc:
                logger.warning("room_index_failed", room_id=room.id, error=str(exc))
                result.errors.append(f"Room {room.id}: {exc}")
                continue
            result.successful_rooms += 1
            result.total_indexed += room_result.indexed
            result.total_skipped += room_result.skipped
            kept = room_result.errors[:_MAX_ROOM_ERRORS_IN_BATCH]
            result.errors.extend(kept)
            result.errors_dropped += room_result.errors_dropped + len(room_result.errors) - len(kept)

        logger.info(
            "bulk_indexing_complete",
            org_id=org_id,
            successful_rooms=result.successful_rooms,
            total_rooms=result.total_rooms,
            total_indexed=result.total_indexed,
        )
        return result

    async def _collect_rooms(self, org_id: str, result: BulkIndexingResult) -> list[Room]:
        """Page through the organization's rooms.

        A listing failure is recorded on *result*; rooms gathered before it
        are still returned.
        """
        rooms: list[Room] = []
        cursor: str | None = None
        try:
            while True:
                page = await with_timeout(
                    self._content_store.list_rooms(org_id, cursor=cursor, limit=_ROOM_PAGE_SIZE),
                    self._call_timeout,
                    "list_rooms",
                )
                rooms.extend(page.items)
                if not page.next_cursor:
                    break
                cursor = page.next_cursor
        except Exception as exc:
            logger.warning(
                "room_listing_failed",
                org_id=org_id,
                collected=len(rooms),
                error=str(exc),
            )
            result.errors.append(f"Room listing: {exc}")
        return rooms
