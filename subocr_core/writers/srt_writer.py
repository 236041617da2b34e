# subocr_core/writers/srt_writer.py
# -*- coding: utf-8 -*-
"""
SRT subtitle file writer.

Each event becomes:

    <sequence number>
    HH:MM:SS,mmm --> HH:MM:SS,mmm
    <text>
    <blank line>

An end time still open when it reaches the writer is rendered as the
largest representable timestamp, i.e. shown until the end of the stream.
"""
from __future__ import annotations

from pathlib import Path
from typing import Sequence, TextIO

from ..errors import StreamIOError
from ..models.events import MAX_PTS, CandidateEvent
from ..timing import pts_to_srt, resolve_end


def format_srt(events: Sequence[CandidateEvent], open_end_pts: int = MAX_PTS) -> str:
    """
    Render events as SRT text.

    Events without a sequence number are numbered by position.
    """
    chunks = []
    for idx, event in enumerate(events, start=1):
        number = event.sequence_number if event.sequence_number is not None else idx
        start_str = pts_to_srt(event.start_pts)
        end_str = pts_to_srt(resolve_end(event.end_pts, open_end_pts))
        text = event.text or ""
        chunks.append(f"{number}\n{start_str} --> {end_str}\n{text}\n\n")
    return "".join(chunks)


class SrtWriter:
    """Writes numbered events to an SRT file or an open text stream."""

    def __init__(
        self,
        path: Path | None = None,
        encoding: str = 'utf-8',
        stream: TextIO | None = None,
        open_end_pts: int = MAX_PTS,
    ):
        if path is None and stream is None:
            raise ValueError("SrtWriter needs a path or a stream")
        self.path = Path(path) if path is not None else None
        self.encoding = encoding
        self.stream = stream
        self.open_end_pts = open_end_pts

    def write(self, events: Sequence[CandidateEvent]) -> None:
        """
        Write all events.

        Raises:
            StreamIOError: If the output cannot be written
        """
        content = format_srt(events, self.open_end_pts)
        try:
            if self.stream is not None:
                self.stream.write(content)
                self.stream.flush()
            else:
                with open(self.path, 'w', encoding=self.encoding, newline='\n') as f:
                    f.write(content)
        except (OSError, UnicodeEncodeError) as e:
            target = self.path or getattr(self.stream, 'name', '<stream>')
            raise StreamIOError(f"Failed to write subtitles to {target}: {e}") from e
