# subocr_core/pipeline.py
# -*- coding: utf-8 -*-
"""
Event Pipeline - Packet stream to ordered subtitle events

Drives the packet source and the SPU assembler and turns completed
sub-picture units into an ordered event list:
    1. Feed each packet; advance the assembler clock on indexed packets
    2. Poll every unit the clock advance completed
    3. Drop re-emissions of the unit that was just handled
    4. Reject undersized bitmaps (decode noise) and, when the index asks
       for forced subtitles only, unforced ones
    5. Warn when index and bitstream timestamps disagree (bitstream wins)
    6. Backfill open end times from the following event
    7. OCR every bitmap, number the events 1..N and hand them to the writer

Usage:
    pipeline = EventPipeline(source, assembler, recognizer, writer, config)
    context = pipeline.run()
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from .errors import ConversionCancelled, DecodeError, OcrFailure
from .models.enums import EndPolicy
from .models.events import MAX_PTS, NO_PTS, OPEN, CandidateEvent, SubPictureUnit
from .models.settings import DEFAULT_OCR_FAILURE_TEXT
from .timing import ms_to_pts

if TYPE_CHECKING:
    from .models.protocols import EventWriter, ImageAssembler, PacketSource, TextRecognizer
    from .models.settings import AppSettings
    from .writers.pgm_dump import PgmDumper

logger = logging.getLogger(__name__)

# Smallest bitmap accepted as a subtitle; anything smaller is decode noise
MIN_WIDTH = 9
MIN_HEIGHT = 1


@dataclass
class PipelineConfig:
    """Configuration for the event pipeline."""
    # Resolution of the last event's open end
    last_end_policy: EndPolicy = EndPolicy.FIXED
    last_duration_ms: int = 4000

    # Text used when recognition fails for a bitmap
    ocr_failure_text: str = DEFAULT_OCR_FAILURE_TEXT

    # OCR threads; recognition runs only after the event list is final
    max_workers: int = 1

    # Keep only sub-pictures flagged as forced (".idx" "forced subs: ON")
    forced_only: bool = False

    @classmethod
    def from_settings(cls, settings: 'AppSettings') -> 'PipelineConfig':
        return cls(
            last_end_policy=settings.last_end_policy,
            last_duration_ms=settings.last_duration_ms,
            ocr_failure_text=settings.ocr_failure_text,
            max_workers=settings.ocr_max_workers,
        )


@dataclass
class RunContext:
    """State of one pipeline run. Never shared between runs."""
    last_accepted_pts: Optional[int] = None
    last_rejected_pts: Optional[int] = None
    dump_counter: int = 0
    events: list[CandidateEvent] = field(default_factory=list)

    # Statistics
    packets: int = 0
    rejected: int = 0
    decode_errors: int = 0
    timestamp_mismatches: int = 0
    ocr_failures: int = 0


def backfill_end_times(
    events: list[CandidateEvent],
    policy: EndPolicy = EndPolicy.FIXED,
    last_duration_ms: int = 4000,
) -> list[CandidateEvent]:
    """
    Close open end times in place.

    Every open end except the last becomes the next event's start. The
    last one is set to ``start + last_duration_ms`` under EndPolicy.FIXED
    and stays open under EndPolicy.OPEN.
    """
    for current, following in zip(events, events[1:]):
        if current.end_pts is OPEN:
            current.end_pts = following.start_pts

    if events and events[-1].end_pts is OPEN and policy is EndPolicy.FIXED:
        last = events[-1]
        last.end_pts = min(last.start_pts + ms_to_pts(last_duration_ms), MAX_PTS)

    return events


def number_events(events: list[CandidateEvent]) -> list[CandidateEvent]:
    """Assign contiguous 1-based sequence numbers."""
    for number, event in enumerate(events, start=1):
        event.sequence_number = number
    return events


class EventPipeline:
    """
    Single-pass, single-threaded conversion of one subtitle stream.

    The source and assembler are consumed in packet order; OCR may run on
    a thread pool once the event list is complete.
    """

    def __init__(
        self,
        source: 'PacketSource',
        assembler: 'ImageAssembler',
        recognizer: Optional['TextRecognizer'] = None,
        writer: Optional['EventWriter'] = None,
        config: Optional[PipelineConfig] = None,
        dumper: Optional['PgmDumper'] = None,
        progress_callback: Optional[Callable[[str, float], None]] = None,
        cancel_check: Optional[Callable[[], bool]] = None,
    ):
        """
        Args:
            source: Yields packets until it returns None
            assembler: Rebuilds sub-picture units from packets
            recognizer: OCR for each accepted bitmap (skipped if None)
            writer: Receives the final numbered events (skipped if None)
            config: Pipeline options
            dumper: Optional diagnostic image dumper
            progress_callback: Signature: callback(message: str, progress: float)
            cancel_check: Polled between packets; True cancels the run
        """
        self.source = source
        self.assembler = assembler
        self.recognizer = recognizer
        self.writer = writer
        self.config = config or PipelineConfig()
        self.dumper = dumper
        self.progress_callback = progress_callback
        self.cancel_check = cancel_check

    def run(self) -> RunContext:
        """
        Convert the whole stream.

        Raises:
            StreamIOError: If reading packets or writing output fails
            ConversionCancelled: If cancel_check requested a stop
        """
        context = RunContext()

        self._log_progress("Reading sub-pictures", 0.0)
        self.collect(context)
        logger.info(
            f"Accepted {len(context.events)} of {context.dump_counter} sub-pictures "
            f"({context.rejected} rejected, {context.decode_errors} undecodable)"
        )

        backfill_end_times(
            context.events,
            self.config.last_end_policy,
            self.config.last_duration_ms,
        )

        if self.recognizer is not None:
            self._log_progress(f"Recognizing {len(context.events)} subtitles", 0.5)
            self.recognize(context)

        number_events(context.events)

        if self.writer is not None:
            self._log_progress("Writing subtitles", 0.95)
            self.writer.write(context.events)

        self._log_progress("Done", 1.0)
        return context

    def collect(self, context: RunContext) -> list[CandidateEvent]:
        """Read the packet stream to its end and build the event list."""
        while True:
            if self.cancel_check is not None and self.cancel_check():
                raise ConversionCancelled(
                    f"Cancelled after {context.packets} packets"
                )

            packet = self.source.next_packet()
            if packet is None:
                break
            context.packets += 1

            self.assembler.feed(packet.data, packet.idx_pts)
            if not packet.has_pts:
                # Continuation data of a unit spanning several packets
                continue
            self.assembler.advance(packet.idx_pts)
            self._poll_all(context, packet.idx_pts)

        for unit in self.assembler.drain():
            self.consider(context, unit, NO_PTS)

        return context.events

    def _poll_all(self, context: RunContext, packet_idx_pts: int):
        """
        Take every unit the last advance() completed.

        Only the first one is checked against the packet's index time;
        later ones were not started by this packet.
        """
        fallback_pts = packet_idx_pts
        while True:
            try:
                unit = self.assembler.poll_completed()
            except DecodeError as e:
                context.decode_errors += 1
                logger.warning(f"Skipping undecodable sub-picture near pts {packet_idx_pts}: {e}")
                continue
            if unit is None:
                return
            self.consider(context, unit, fallback_pts)
            fallback_pts = NO_PTS

    def consider(self, context: RunContext, unit: SubPictureUnit, packet_idx_pts: int = NO_PTS) -> bool:
        """
        Apply dedup, the size and forced filters and the timestamp check to one unit.

        Returns:
            True if the unit was appended to the event list
        """
        start_pts = unit.start_pts
        context.dump_counter += 1
        counter = context.dump_counter

        # Skip this unit if it is another emission of a sub-picture that
        # was decoded from multiple packets.
        if start_pts == context.last_accepted_pts or start_pts == context.last_rejected_pts:
            return False

        if unit.width < MIN_WIDTH or unit.height < MIN_HEIGHT:
            logger.warning(
                f"Image too small {counter}, size: {unit.bitmap.size} bytes, "
                f"{unit.width}x{unit.height} pixels, expected at least {MIN_WIDTH}x{MIN_HEIGHT}"
            )
            context.last_rejected_pts = start_pts
            context.rejected += 1
            return False

        if self.config.forced_only and not unit.forced:
            logger.debug(f"{counter}: not a forced sub-picture, skipping")
            context.last_rejected_pts = start_pts
            context.rejected += 1
            return False

        idx_pts = unit.idx_pts if unit.idx_pts >= 0 else packet_idx_pts
        if idx_pts >= 0 and idx_pts != start_pts:
            context.timestamp_mismatches += 1
            logger.warning(
                f"{counter}: time stamp from .idx ({idx_pts}) "
                f"doesn't match time stamp from .sub ({start_pts})"
            )

        if context.last_accepted_pts is not None and start_pts < context.last_accepted_pts:
            logger.warning(
                f"{counter}: start {start_pts} precedes previous subtitle "
                f"({context.last_accepted_pts}), dropping"
            )
            context.last_rejected_pts = start_pts
            context.rejected += 1
            return False

        context.events.append(
            CandidateEvent(
                start_pts=start_pts,
                end_pts=unit.end_pts,
                bitmap=unit.bitmap,
                dump_index=counter,
            )
        )
        context.last_accepted_pts = start_pts

        if self.dumper is not None:
            self.dumper.dump(counter, unit.bitmap)

        return True

    def recognize(self, context: RunContext):
        """Fill in the text of every event, releasing bitmaps afterwards."""
        events = context.events
        if not events:
            return

        workers = max(1, self.config.max_workers)
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as pool:
                results = list(pool.map(self._recognize_event, events))
        else:
            results = []
            for i, event in enumerate(events):
                results.append(self._recognize_event(event))
                if (i + 1) % 50 == 0:
                    self._log_progress(
                        f"Recognized {i + 1}/{len(events)}",
                        0.5 + 0.45 * (i + 1) / len(events),
                    )

        for event, (text, failed) in zip(events, results):
            event.text = text
            event.bitmap = None
            if failed:
                context.ocr_failures += 1

    def _recognize_event(self, event: CandidateEvent) -> tuple[str, bool]:
        try:
            text = self.recognizer.recognize(event.bitmap)
        except OcrFailure as e:
            logger.warning(f"OCR failed for {event.dump_index}: {e}")
            return self.config.ocr_failure_text, True
        logger.debug(f"{event.dump_index} Text: {text}")
        return text, False

    def _log_progress(self, message: str, progress: float):
        logger.debug(f"{message} ({int(progress * 100)}%)")
        if self.progress_callback:
            self.progress_callback(message, progress)
