"""Character-window text chunking with separator-aware cut points.

Splits text into ordered, overlapping segments sized for embedding models
(1000 characters with a 200-character overlap by default).

Two design goals:

1. **Natural boundaries** -- each window is cut at the last paragraph
   break, line break, sentence end, clause break or space inside the
   window, in that order of preference.  A separator only counts when the
   segment before it is longer than half a window; otherwise a tiny
   fragment would be emitted and the cut falls on the raw window edge
   instead (a mid-word cut is preferred over stalling).

2. **Overlapping windows** -- the next window starts ``overlap`` characters
   before the previous cut, so a sentence straddling a boundary is fully
   present in at least one chunk.  When that would not move past the
   current window start (an overlap longer than the segment just cut), the
   window advances by ``chunk_size - overlap`` instead.

The chunker is pure: cleaning (whitespace collapsing, control-character
stripping) is the document processors' job and happens before chunking.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_OVERLAP = 200

# Ordered by preference: the first separator with an acceptable position wins.
_SEPARATORS: tuple[str, ...] = ("\n\n", "\n", ". ", "? ", "! ", "; ", ", ", " ")


def chunk_text(
    text: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
) -> list[str]:
    """Split *text* into overlapping segments of at most *chunk_size* characters.

    Parameters
    ----------
    text:
        The (already cleaned) text to split.
    chunk_size:
        Window size in characters.
    overlap:
        Characters shared between consecutive windows.  Must be smaller
        than *chunk_size*.

    Returns
    -------
    list[str]
        Empty for blank input; ``[text]`` unchanged when the text fits in
        one window; otherwise stripped, non-empty segments in order.

    Raises
    ------
    ValueError
        If *chunk_size* is not positive or *overlap* is outside
        ``[0, chunk_size)``.
    """
    _validate(chunk_size, overlap)

    if not text or not text.strip():
        return []
    if len(text) <= chunk_size:
        return [text]

    length = len(text)
    segments: list[str] = []
    start = 0

    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            end = _find_cut(text, start, end, chunk_size)

        segment = text[start:end].strip()
        if segment:
            segments.append(segment)

        if end >= length:
            break
        next_start = end - overlap
        if next_start <= start:
            # The cut fell within ``overlap`` of the window start: step as a
            # raw window would.  Stays below ``end`` since end - start > chunk_size / 2.
            next_start = start + max(chunk_size - overlap, 1)
        start = next_start

    return segments


def _find_cut(text: str, start: int, window_end: int, chunk_size: int) -> int:
    """Return the cut position for the window ``[start, window_end)``."""
    min_segment = chunk_size / 2
    for separator in _SEPARATORS:
        pos = text.rfind(separator, start, window_end)
        if pos != -1 and pos - start > min_segment:
            return pos + len(separator)
    return window_end


def _validate(chunk_size: int, overlap: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError(
            f"overlap must be in [0, chunk_size), got overlap={overlap} chunk_size={chunk_size}"
        )


class TextChunker:
    """Configured chunker with per-call overrides.

    Parameters
    ----------
    chunk_size:
        Default window size in characters (default 1000).
    overlap:
        Default overlap in characters (default 200).
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        overlap: int = DEFAULT_OVERLAP,
    ) -> None:
        _validate(chunk_size, overlap)
        self._chunk_size = chunk_size
        self._overlap = overlap

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    @property
    def overlap(self) -> int:
        return self._overlap

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chunk(
        self,
        text: str,
        chunk_size: int | None = None,
        overlap: int | None = None,
    ) -> list[str]:
        """Split *text* using this chunker's defaults unless overridden.

        Document processors pass their own per-type sizes; the defaults
        apply to everything else (chat messages, plain documents).
        """
        size = chunk_size if chunk_size is not None else self._chunk_size
        lap = overlap if overlap is not None else self._overlap
        segments = chunk_text(text, size, lap)
        if segments:
            logger.debug(
                "chunking_complete",
                num_chunks=len(segments),
                text_length=len(text),
                chunk_size=size,
                overlap=lap,
            )
        return segments
