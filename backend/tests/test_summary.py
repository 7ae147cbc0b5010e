from datetime import timezone

from binbird.domain.summary import (
    format_duration,
    format_duration_seconds,
    format_timestamp,
    summarize_run,
)
from binbird.schemas.runs import RunSessionRecord


def test_format_duration_edge_cases():
    assert format_duration(0) == "0s"
    assert format_duration(-500) == format_duration(0)
    assert format_duration(3_661_000) == "1h 1m"
    assert format_duration(45_000) == "45s"
    assert format_duration(7 * 60_000 + 12_000) == "7m 12s"
    assert format_duration(12 * 60_000 + 12_000) == "12m"
    assert format_duration(2 * 3_600_000) == "2h"
    assert format_duration(float("nan")) == "0s"


def test_format_duration_rounds_halves_up():
    assert format_duration(2_500) == "3s"
    assert format_duration(1_499) == "1s"
    assert format_duration(9 * 60_000 + 30_500) == "9m 31s"


def test_format_duration_seconds_is_coarse():
    assert format_duration_seconds(0) == "<1m"
    assert format_duration_seconds(59) == "<1m"
    assert format_duration_seconds(5_400) == "1h 30m"
    assert format_duration_seconds(-30) == "<1m"


def test_format_timestamp():
    assert format_timestamp("2026-03-10T06:05:00+00:00", timezone.utc) == "Tue, Mar 10 • 6:05 AM"
    assert format_timestamp("2026-03-10T18:40:00") == "Tue, Mar 10 • 6:40 PM"
    assert format_timestamp("garbage") is None
    assert format_timestamp(None) is None


def test_summary_of_a_finished_run():
    summary = summarize_run(
        RunSessionRecord(
            started_at="2026-03-10T06:00:00Z",
            ended_at="2026-03-10T07:30:00Z",
            total_jobs=4,
            completed_jobs=3,
        )
    )

    assert summary.duration_ms == 90 * 60_000
    assert summary.duration_label == "1h 30m"
    assert summary.average_ms == 30 * 60_000
    assert summary.average_label == "30m"
    assert summary.jobs_completed == 3
    assert summary.total_jobs == 4
    assert summary.completion_percent == 75


def test_inverted_timestamps_leave_duration_unknown():
    summary = summarize_run(
        RunSessionRecord(
            started_at="2026-03-10T08:00:00Z",
            ended_at="2026-03-10T07:00:00Z",
            total_jobs=2,
            completed_jobs=2,
        )
    )

    assert summary.duration_ms is None
    assert summary.duration_label == "—"
    assert summary.average_ms is None
    assert summary.average_label == "—"


def test_missing_or_bad_timestamps_are_tolerated():
    summary = summarize_run(
        RunSessionRecord(started_at="nope", ended_at=None, total_jobs=2, completed_jobs=1)
    )

    assert summary.started_at is None
    assert summary.duration_ms is None
    assert summary.start_label is None
    assert summary.completion_percent == 50


def test_completed_jobs_are_clamped():
    over = summarize_run(
        RunSessionRecord(
            started_at="2026-03-10T06:00:00Z",
            ended_at="2026-03-10T06:10:00Z",
            total_jobs=2,
            completed_jobs=9,
        )
    )
    assert over.jobs_completed == 2
    assert over.average_label == "5m"

    under = summarize_run(
        RunSessionRecord(started_at="2026-03-10T06:00:00Z", total_jobs=0, completed_jobs=-3)
    )
    assert under.jobs_completed == 0
    assert under.completion_percent is None


def test_summary_rounds_half_percent_up():
    summary = summarize_run(
        RunSessionRecord(
            started_at="2026-03-10T06:00:00Z",
            ended_at="2026-03-10T06:00:05Z",
            total_jobs=8,
            completed_jobs=2,
        )
    )

    assert summary.completion_percent == 25
    assert summary.average_ms == 2_500
    assert summary.average_label == "3s"

    one_of_eight = summarize_run(
        RunSessionRecord(started_at="2026-03-10T06:00:00Z", total_jobs=8, completed_jobs=1)
    )
    assert one_of_eight.completion_percent == 13
