"""
Temporal expression parser.

Finds temporal expressions in free text, resolves each one to a calendar date
relative to the moment the text was written, annotates relative phrases with
the date they resolve to, and scores how temporally relevant the text is.

Parsing never raises: text must always be storable even if enrichment fails.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from temporal_knowledge.config import TemporalConfig
from temporal_knowledge.models.temporal import (
    ProcessedTemporalContent,
    RecurrenceFrequency,
    RecurrenceRule,
    TemporalKind,
    TemporalReference,
)
from temporal_knowledge.temporal.patterns import (
    ABSOLUTE_PATTERNS,
    ANNOTATION_PATTERN,
    RECURRING_EVENT_PATTERN,
    RELATIVE_PATTERNS,
    format_long_date,
    resolve_absolute,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    """Get current UTC time (naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class _SpanSet:
    """Character ranges already claimed by an accepted match."""

    def __init__(self) -> None:
        self._spans: list[tuple[int, int]] = []

    def add(self, start: int, end: int) -> None:
        self._spans.append((start, end))

    def overlaps(self, start: int, end: int) -> bool:
        return any(start < s_end and s_start < end for s_start, s_end in self._spans)


class TemporalExpressionParser:
    """
    Parses temporal expressions out of free text.

    Absolute dates are scanned first, then the relative/recurring pattern
    table in order. The first match claiming a span of text wins, and
    references are deduplicated by their case-insensitive text.

    Usage:
        parser = TemporalExpressionParser()
        result = parser.parse("Dentist next friday", reference_instant=now)
        result.processed_content  # "Dentist next friday (Friday, June 6, 2025)"
    """

    def __init__(
        self,
        config: TemporalConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.config = config or TemporalConfig()
        self._clock = clock or _utcnow

    def parse(
        self,
        content: str,
        reference_instant: datetime | None = None,
        storage_instant: datetime | None = None,
        now: datetime | None = None,
    ) -> ProcessedTemporalContent:
        """
        Parse temporal expressions in content.

        Args:
            content: Free text to parse
            reference_instant: Instant relative phrases are resolved against
            storage_instant: When the text was stored (default: reference_instant)
            now: Evaluation time for past/future checks (default: clock)

        Returns:
            ProcessedTemporalContent with annotated text, references and score
        """
        now = now or self._clock()
        reference = reference_instant or now
        stored_at = storage_instant or reference

        try:
            return self._parse(content, reference, stored_at, now)
        except Exception:
            logger.exception("Temporal parsing failed, storing content unprocessed")
            return ProcessedTemporalContent(
                original_content=content,
                processed_content=content,
                temporal_relevance_score=self.config.fallback_score,
                parse_failed=True,
            )

    def _parse(
        self,
        content: str,
        reference: datetime,
        stored_at: datetime,
        now: datetime,
    ) -> ProcessedTemporalContent:
        claimed = _SpanSet()

        # Earlier annotations are never matched again
        for match in ANNOTATION_PATTERN.finditer(content):
            claimed.add(match.start(), match.end())

        references: list[TemporalReference] = []
        annotations: list[tuple[int, datetime]] = []

        yearly_event = RECURRING_EVENT_PATTERN.search(content) is not None

        for shape, regex in ABSOLUTE_PATTERNS:
            for match in regex.finditer(content):
                if claimed.overlaps(match.start(), match.end()):
                    continue
                resolved = resolve_absolute(
                    shape, match, reference, self.config.prefer_day_first
                )
                if resolved is None or resolved.year <= self.config.min_year:
                    continue
                claimed.add(match.start(), match.end())

                recurrence = None
                if yearly_event:
                    recurrence = RecurrenceRule(
                        frequency=RecurrenceFrequency.YEARLY,
                        month=resolved.month,
                        day_of_month=resolved.day,
                    )
                references.append(
                    self._reference(
                        match.group(0),
                        resolved,
                        TemporalKind.ABSOLUTE,
                        recurrence,
                        stored_at,
                        now,
                    )
                )

        for pattern in RELATIVE_PATTERNS:
            for match in pattern.regex.finditer(content):
                if claimed.overlaps(match.start(), match.end()):
                    continue
                claimed.add(match.start(), match.end())

                resolved, recurrence = pattern.handler(match, reference)
                references.append(
                    self._reference(
                        match.group(0),
                        resolved,
                        pattern.kind,
                        recurrence,
                        stored_at,
                        now,
                    )
                )
                if not ANNOTATION_PATTERN.match(content, match.end()):
                    annotations.append((match.end(), resolved))

        unique = self._deduplicate(references)
        processed = self._annotate(content, annotations)

        if unique:
            logger.debug(f"Found {len(unique)} temporal references in content")

        return ProcessedTemporalContent(
            original_content=content,
            processed_content=processed,
            temporal_info=unique,
            temporal_relevance_score=self.score(unique, now),
            contains_temporal_refs=bool(unique),
            resolved_dates=[ref.resolved_date for ref in unique if ref.resolved_date],
        )

    def _reference(
        self,
        text: str,
        resolved: datetime,
        kind: TemporalKind,
        recurrence: RecurrenceRule | None,
        stored_at: datetime,
        now: datetime,
    ) -> TemporalReference:
        confidence = {
            TemporalKind.ABSOLUTE: self.config.absolute_confidence,
            TemporalKind.RELATIVE: self.config.relative_confidence,
            TemporalKind.RECURRING: self.config.recurring_confidence,
        }[kind]
        return TemporalReference(
            original_text=text,
            resolved_date=resolved,
            kind=kind,
            confidence=confidence,
            is_past=resolved < now,
            days_since_storage=(now - stored_at).days,
            recurrence=recurrence,
        )

    @staticmethod
    def _deduplicate(references: list[TemporalReference]) -> list[TemporalReference]:
        seen: set[str] = set()
        unique = []
        for ref in references:
            key = ref.original_text.lower()
            if key not in seen:
                seen.add(key)
                unique.append(ref)
        return unique

    @staticmethod
    def _annotate(content: str, annotations: list[tuple[int, datetime]]) -> str:
        # Insert from the end so earlier offsets stay valid
        processed = content
        for position, resolved in sorted(annotations, key=lambda a: a[0], reverse=True):
            processed = (
                processed[:position]
                + f" ({format_long_date(resolved)})"
                + processed[position:]
            )
        return processed

    def score(self, references: list[TemporalReference], now: datetime) -> float:
        """
        Temporal relevance of a set of references at time ``now``.

        Mean over references of confidence, boosted for future and recurring
        references and penalized for stale one-time references, clamped to
        [0, 1]. No references scores 0.
        """
        if not references:
            return 0.0

        total = 0.0
        for ref in references:
            value = ref.confidence
            if ref.resolved_date and ref.resolved_date > now:
                value += self.config.future_boost
            if ref.recurrence:
                value += self.config.recurring_boost
            if ref.is_past and not ref.recurrence:
                if ref.days_since_storage > 30:
                    value -= self.config.month_old_penalty
                elif ref.days_since_storage > 7:
                    value -= self.config.week_old_penalty
            total += value

        return max(0.0, min(1.0, total / len(references)))

    def reevaluate(
        self,
        references: list[TemporalReference],
        stored_at: datetime,
        now: datetime | None = None,
    ) -> tuple[list[TemporalReference], float]:
        """
        Recompute past/age fields and the score of stored references.

        Returns:
            Tuple of (updated references, new relevance score)
        """
        now = now or self._clock()
        updated = [ref.evaluated_at(now, stored_at) for ref in references]
        return updated, self.score(updated, now)
