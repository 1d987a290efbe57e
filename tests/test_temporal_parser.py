"""
Tests for temporal expression parsing.
"""

import pytest
from datetime import date, datetime, timedelta

from temporal_knowledge.config import TemporalConfig
from temporal_knowledge.models.temporal import (
    RecurrenceFrequency,
    RecurrenceRule,
    TemporalKind,
    TemporalReference,
)
from temporal_knowledge.temporal.parser import TemporalExpressionParser
from temporal_knowledge.temporal.patterns import (
    WEEKDAYS,
    add_months,
    expand_year,
    format_long_date,
    sunday_weekday,
    weekday_offset,
)

# Friday
NOW = datetime(2025, 5, 30, 12, 0, 0)


@pytest.fixture
def parser():
    return TemporalExpressionParser(clock=lambda: NOW)


class TestRelativeExpressions:
    """Tests for relative phrases."""

    def test_bday_tomorrow(self, parser):
        """Test the tomorrow reference gets the future boost."""
        result = parser.parse("bday tomorrow", reference_instant=NOW, storage_instant=NOW)

        assert result.contains_temporal_refs
        assert len(result.temporal_info) == 1

        ref = result.temporal_info[0]
        assert ref.original_text == "tomorrow"
        assert ref.kind == TemporalKind.RELATIVE
        assert ref.resolved_date.date() == date(2025, 5, 31)
        assert not ref.is_past
        assert result.temporal_relevance_score > 0.5

    def test_annotation_inserted(self, parser):
        """Test relative phrases get their resolved date appended."""
        result = parser.parse("bday tomorrow", reference_instant=NOW)

        assert result.processed_content == "bday tomorrow (Saturday, May 31, 2025)"
        assert result.original_content == "bday tomorrow"

    def test_yesterday_and_today(self, parser):
        """Test yesterday and today resolve around the reference."""
        result = parser.parse("Did laundry yesterday, groceries today", reference_instant=NOW)

        dates = {ref.original_text.lower(): ref.resolved_date.date() for ref in result.temporal_info}
        assert dates["yesterday"] == date(2025, 5, 29)
        assert dates["today"] == date(2025, 5, 30)

    def test_in_n_units_and_ago(self, parser):
        """Test numeric offsets in days, weeks and months."""
        result = parser.parse(
            "Vet visit in 3 days, paid rent 2 weeks ago, renew passport in 2 months",
            reference_instant=NOW,
        )

        dates = {ref.original_text: ref.resolved_date.date() for ref in result.temporal_info}
        assert dates["in 3 days"] == date(2025, 6, 2)
        assert dates["2 weeks ago"] == date(2025, 5, 16)
        assert dates["in 2 months"] == date(2025, 7, 30)

    def test_next_month_clamps_to_month_end(self, parser):
        """Test month arithmetic never overflows into the following month."""
        reference = datetime(2025, 1, 31, 9, 0)
        result = parser.parse("Dentist next month", reference_instant=reference, now=reference)

        assert result.temporal_info[0].resolved_date.date() == date(2025, 2, 28)

    def test_duplicate_phrases_deduplicated(self, parser):
        """Test the same phrase twice yields one reference."""
        result = parser.parse("Tomorrow is busy. Pack tomorrow.", reference_instant=NOW)

        assert len(result.temporal_info) == 1

    def test_this_weekday_same_day(self, parser):
        """Test 'this friday' on a Friday is the same day."""
        result = parser.parse("Pizza night this friday", reference_instant=NOW)

        assert result.temporal_info[0].resolved_date.date() == date(2025, 5, 30)


class TestWeekdayBounds:
    """Tests for next/last weekday offsets."""

    def test_next_weekday_is_one_to_seven_days_ahead(self, parser):
        """Test 'next <day>' for every reference weekday and target."""
        for offset in range(7):
            reference = datetime(2025, 6, 1) + timedelta(days=offset)
            for day in WEEKDAYS:
                result = parser.parse(f"Call mom next {day}", reference_instant=reference, now=reference)
                delta = (result.temporal_info[0].resolved_date - reference).days
                assert 1 <= delta <= 7, (reference, day, delta)

    def test_last_weekday_is_one_to_seven_days_behind(self, parser):
        """Test 'last <day>' for every reference weekday and target."""
        for offset in range(7):
            reference = datetime(2025, 6, 1) + timedelta(days=offset)
            for day in WEEKDAYS:
                result = parser.parse(f"Saw it last {day}", reference_instant=reference, now=reference)
                delta = (result.temporal_info[0].resolved_date - reference).days
                assert -7 <= delta <= -1, (reference, day, delta)

    def test_next_friday_on_friday_is_a_week_ahead(self, parser):
        """Test the same weekday rolls a full week."""
        result = parser.parse("Dentist next friday", reference_instant=NOW)

        assert result.temporal_info[0].resolved_date.date() == date(2025, 6, 6)

    def test_weekday_offset_helper(self):
        """Test offsets with Sunday numbered 0."""
        assert weekday_offset(5, 5, 1) == 7
        assert weekday_offset(5, 1, 1) == 3
        assert weekday_offset(5, 5, -1) == -7
        assert weekday_offset(1, 5, -1) == -3
        assert weekday_offset(5, 5, 0) == 0
        assert sunday_weekday(datetime(2025, 6, 1)) == 0


class TestAbsoluteDates:
    """Tests for absolute date formats."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Reunion on 2025-07-09", date(2025, 7, 9)),
            ("Reunion on 7/9/2025", date(2025, 7, 9)),
            ("Reunion on 13/9/2025", date(2025, 9, 13)),
            ("Reunion on 7/9/25", date(2025, 7, 9)),
            ("Reunion on July 9, 2025", date(2025, 7, 9)),
            ("Reunion on Jul 9th", date(2025, 7, 9)),
            ("Reunion on the 9th of July 2026", date(2026, 7, 9)),
        ],
    )
    def test_formats(self, parser, text, expected):
        """Test supported absolute date shapes."""
        result = parser.parse(text, reference_instant=NOW)

        assert len(result.temporal_info) == 1
        ref = result.temporal_info[0]
        assert ref.kind == TemporalKind.ABSOLUTE
        assert ref.resolved_date.date() == expected

    def test_prefer_day_first(self):
        """Test ambiguous numeric dates read day-first when configured."""
        parser = TemporalExpressionParser(TemporalConfig(prefer_day_first=True))
        result = parser.parse("Flight 7/9/2025", reference_instant=NOW, now=NOW)

        assert result.temporal_info[0].resolved_date.date() == date(2025, 9, 7)

    def test_absolute_dates_not_annotated(self, parser):
        """Test only relative phrases get annotations."""
        result = parser.parse("Reunion on July 9, 2025", reference_instant=NOW)

        assert result.processed_content == "Reunion on July 9, 2025"

    def test_ancient_years_discarded(self, parser):
        """Test dates at or before the minimum year are ignored."""
        result = parser.parse("Built 1/1/1850", reference_instant=NOW)

        assert not result.contains_temporal_refs

    def test_invalid_calendar_date_ignored(self, parser):
        """Test impossible dates are skipped rather than raising."""
        result = parser.parse("Due 2/30/2025", reference_instant=NOW)

        assert not result.contains_temporal_refs
        assert not result.parse_failed

    @pytest.mark.parametrize("text", ["I may 5 times a day", "you may 12 of them"])
    def test_verb_may_is_not_a_date(self, parser, text):
        result = parser.parse(text, reference_instant=NOW)

        assert not result.contains_temporal_refs

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Recital May 5", date(2025, 5, 5)),
            ("recital may 5th", date(2025, 5, 5)),
            ("recital may 5, 2026", date(2026, 5, 5)),
            ("recital on the 5th of may", date(2025, 5, 5)),
        ],
    )
    def test_month_may_still_parsed(self, parser, text, expected):
        result = parser.parse(text, reference_instant=NOW)

        assert result.temporal_info[0].resolved_date.date() == expected

    def test_expand_year(self):
        assert expand_year(25) == 2025
        assert expand_year(75) == 1975
        assert expand_year(2031) == 2031


class TestRecurrence:
    """Tests for recurring references."""

    def test_birthday_past_date_recurs_yearly(self, parser):
        """Test a birthday keyword forces yearly recurrence on absolute dates."""
        result = parser.parse("Mom's birthday: she was born March 3, 1960", reference_instant=NOW)

        ref = result.temporal_info[0]
        assert ref.kind == TemporalKind.ABSOLUTE
        assert ref.is_past
        assert ref.recurrence is not None
        assert ref.recurrence.frequency == RecurrenceFrequency.YEARLY
        assert ref.recurrence.month == 3
        assert ref.recurrence.day_of_month == 3

    def test_anniversary_recurs(self, parser):
        """Test other yearly events recur too."""
        result = parser.parse("Our anniversary is 6/14/2010", reference_instant=NOW)

        assert result.temporal_info[0].recurrence.frequency == RecurrenceFrequency.YEARLY

    def test_plain_past_date_does_not_recur(self, parser):
        result = parser.parse("Moved in on 6/14/2010", reference_instant=NOW)

        assert result.temporal_info[0].recurrence is None

    def test_every_weekday(self, parser):
        """Test 'every monday' recurs weekly on Monday."""
        result = parser.parse("Trash goes out every monday", reference_instant=NOW)

        ref = result.temporal_info[0]
        assert ref.kind == TemporalKind.RECURRING
        assert ref.recurrence.frequency == RecurrenceFrequency.WEEKLY
        assert ref.recurrence.day_of_week == 1
        assert ref.resolved_date == datetime(2025, 6, 2, 12, 0)

    @pytest.mark.parametrize(
        "text,annotation",
        [
            ("Call mom every Sunday", "every Sunday (Sunday, June 1, 2025)"),
            ("Piano every friday", "every friday (Friday, May 30, 2025)"),
        ],
    )
    def test_every_weekday_annotation_names_that_day(self, parser, text, annotation):
        """Test the annotation shows the first occurrence, not the reference day."""
        result = parser.parse(text, reference_instant=NOW, now=NOW)

        assert annotation in result.processed_content

    @pytest.mark.parametrize(
        "phrase,frequency",
        [
            ("daily", RecurrenceFrequency.DAILY),
            ("every week", RecurrenceFrequency.WEEKLY),
            ("monthly", RecurrenceFrequency.MONTHLY),
            ("annually", RecurrenceFrequency.YEARLY),
        ],
    )
    def test_frequency_phrases(self, parser, phrase, frequency):
        result = parser.parse(f"Water the plants {phrase}", reference_instant=NOW)

        assert result.temporal_info[0].recurrence.frequency == frequency


class TestIdempotence:
    """Tests for reparsing processed content."""

    def test_reparse_does_not_reannotate(self, parser):
        """Test annotations are never matched or annotated again."""
        first = parser.parse(
            "Dentist next friday and lunch tomorrow", reference_instant=NOW, storage_instant=NOW
        )
        second = parser.parse(first.processed_content, reference_instant=NOW, storage_instant=NOW)

        assert first.processed_content == (
            "Dentist next friday (Friday, June 6, 2025) and lunch tomorrow (Saturday, May 31, 2025)"
        )
        assert second.processed_content == first.processed_content
        assert [r.original_text for r in second.temporal_info] == [
            r.original_text for r in first.temporal_info
        ]


class TestScoring:
    """Tests for temporal relevance scoring."""

    def test_no_references_scores_zero(self, parser):
        result = parser.parse("Buy milk", reference_instant=NOW)

        assert result.temporal_relevance_score == 0.0
        assert not result.contains_temporal_refs
        assert not result.parse_failed

    def test_failure_falls_back_to_neutral_score(self, parser, monkeypatch):
        """Test parser errors never propagate."""

        def broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(parser, "_parse", broken)
        result = parser.parse("bday tomorrow", reference_instant=NOW)

        assert result.parse_failed
        assert result.temporal_relevance_score == 0.5
        assert result.processed_content == "bday tomorrow"
        assert result.temporal_info == []

    def test_stale_past_reference_penalized(self, parser):
        """Test week-old and month-old penalties for one-time past events."""
        past = TemporalReference(
            original_text="yesterday",
            resolved_date=NOW - timedelta(days=10),
            kind=TemporalKind.RELATIVE,
            confidence=0.8,
            is_past=True,
            days_since_storage=9,
        )
        assert parser.score([past], NOW) == pytest.approx(0.7)

        older = past.model_copy(update={"days_since_storage": 40})
        assert parser.score([older], NOW) == pytest.approx(0.6)

        fresh = past.model_copy(update={"days_since_storage": 2})
        assert parser.score([fresh], NOW) == pytest.approx(0.8)

    def test_recurring_not_penalized(self, parser):
        ref = TemporalReference(
            original_text="June 14",
            resolved_date=NOW - timedelta(days=300),
            kind=TemporalKind.ABSOLUTE,
            confidence=0.9,
            is_past=True,
            days_since_storage=300,
            recurrence=RecurrenceRule(frequency=RecurrenceFrequency.YEARLY),
        )

        assert parser.score([ref], NOW) == 1.0

    def test_reevaluate_ages_references(self, parser):
        """Test stored references are re-scored at a later time."""
        stored = parser.parse("Party tomorrow", reference_instant=NOW, now=NOW)
        later = NOW + timedelta(days=10)

        refs, score = parser.reevaluate(stored.temporal_info, NOW, later)

        assert refs[0].is_past
        assert refs[0].days_since_storage == 10
        assert score == pytest.approx(0.7)


class TestHelpers:
    """Tests for date helpers."""

    def test_format_long_date(self):
        assert format_long_date(datetime(2025, 5, 31)) == "Saturday, May 31, 2025"

    def test_add_months_leap_year(self):
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert add_months(datetime(2025, 3, 31), -1) == datetime(2025, 2, 28)
        assert add_months(datetime(2025, 12, 15), 1) == datetime(2026, 1, 15)
