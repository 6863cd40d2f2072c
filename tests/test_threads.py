"""Tests for conversation thread reports."""

from datetime import datetime, timedelta, timezone

import pytest

from inquiry_router.models import ConversationThread
from inquiry_router.threads import describe_threads, filter_threads, format_duration

START = datetime(2026, 1, 1, tzinfo=timezone.utc)


def make_thread(thread_id, category, urgency="medium", assigned_to="general_assistant"):
    return ConversationThread(
        id=thread_id,
        category=category,
        urgency=urgency,
        start_time=START.isoformat(),
        assigned_to=assigned_to,
    )


@pytest.fixture
def threads():
    return [
        make_thread("INQ-A-00001", "VEHICLE_DIAGNOSTICS", "high", "diagnostic_specialist"),
        make_thread("INQ-A-00002", "PARTS_INFORMATION", "medium", "parts_database"),
        make_thread("INQ-A-00003", "VEHICLE_DIAGNOSTICS", "low", "diagnostic_system"),
    ]


@pytest.mark.parametrize(
    "minutes,expected",
    [
        (0, "0 minutes"),
        (1, "1 minute"),
        (45, "45 minutes"),
        (61, "1 hour 1 minute"),
        (90, "1 hour 30 minutes"),
        (125, "2 hours 5 minutes"),
    ],
)
def test_format_duration(minutes, expected):
    assert format_duration(START.isoformat(), START + timedelta(minutes=minutes)) == expected


def test_no_threads():
    assert describe_threads("show me threads", []) == (
        "There are no active conversation threads at the moment."
    )


def test_thread_followed_by_ordinary_word_is_not_an_id(threads):
    report = describe_threads("is there a thread for parts?", threads)

    assert "not found" not in report
    assert report.startswith("## Active Conversation Threads\n\n")
    assert "INQ-A-00002" in report
    assert "INQ-A-00001" not in report


def test_thread_details_by_id(threads):
    report = describe_threads(
        "tell me about thread inq-a-00001", threads, now=START + timedelta(minutes=90)
    )

    assert report.startswith("## Conversation Thread: INQ-A-00001\n\n")
    assert "**Category:** vehicle diagnostics\n" in report
    assert "**Status:** active\n" in report
    assert "**Urgency:** high\n" in report
    assert "**Assigned To:** diagnostic specialist\n" in report
    assert "**Duration:** 1 hour 30 minutes\n" in report


def test_thread_not_found(threads):
    assert describe_threads("thread inq-zzz", threads) == (
        "Conversation thread with ID INQ-ZZZ not found. Please check the ID and try again."
    )


def test_filter_urgent(threads):
    assert [thread.id for thread in filter_threads("anything urgent?", threads)] == ["INQ-A-00001"]


def test_filter_by_category(threads):
    diagnostics = filter_threads("diagnostic threads", threads)
    parts = filter_threads("parts threads", threads)

    assert [thread.id for thread in diagnostics] == ["INQ-A-00001", "INQ-A-00003"]
    assert [thread.id for thread in parts] == ["INQ-A-00002"]


def test_list_threads(threads):
    report = describe_threads("list", threads)

    assert report.startswith("## Active Conversation Threads\n\n")
    assert "1. 🔴 **INQ-A-00001** - vehicle diagnostics\n" in report
    assert "2. 🟡 **INQ-A-00002** - parts information\n" in report
    assert "3. 🟢 **INQ-A-00003** - vehicle diagnostics\n" in report
    assert "   Assigned to: parts database\n" in report
    assert report.endswith("For more details on a specific thread, ask about it by ID.")


def test_list_without_matches(threads):
    assert describe_threads("repair threads", threads) == (
        "No conversation threads match your criteria."
    )


def test_summary_counts(threads):
    report = describe_threads("give me a summary", threads)

    assert "**Total Active Threads:** 3\n" in report
    assert "- vehicle diagnostics: 2\n" in report
    assert "- parts information: 1\n" in report
    assert "- High: 1\n- Medium: 1\n- Low: 1\n" in report


def test_summary_respects_filter(threads):
    report = describe_threads("diagnostic overview", threads)

    assert "**Total Active Threads:** 2\n" in report
