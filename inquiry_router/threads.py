"""Reports about the conversation threads recorded by the router."""

import re
from collections import Counter
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from .models import ConversationCategory, ConversationThread

_THREAD_ID = re.compile(r"\bthread\s+(inq-[a-z0-9-]+)", re.IGNORECASE)

_URGENCY_MARKERS = {"high": "🔴", "medium": "🟡", "low": "🟢"}

# Query keywords -> category filter, first match wins.
_CATEGORY_FILTERS = (
    (("diagnostic", "dtc", "code"), ConversationCategory.VEHICLE_DIAGNOSTICS),
    (("parts", "pricing"), ConversationCategory.PARTS_INFORMATION),
    (("customer", "support"), ConversationCategory.WARRANTY_SERVICE),
    (("repair", "procedure"), ConversationCategory.REPAIR_GUIDANCE),
    (("technical", "question"), ConversationCategory.MAINTENANCE_ADVICE),
)


def _label(value: str) -> str:
    return value.replace("_", " ").lower()


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_duration(start_time: str, now: Optional[datetime] = None) -> str:
    """Human readable time elapsed since ``start_time``."""
    now = now or datetime.now(timezone.utc)
    minutes = max(0, int((now - _parse_time(start_time)).total_seconds() // 60))
    hours, remainder = divmod(minutes, 60)

    if hours > 0:
        return (
            f"{hours} hour{'s' if hours > 1 else ''} "
            f"{remainder} minute{'s' if remainder != 1 else ''}"
        )
    return f"{minutes} minute{'s' if minutes != 1 else ''}"


def format_thread_details(thread: ConversationThread, now: Optional[datetime] = None) -> str:
    response = f"## Conversation Thread: {thread.id}\n\n"
    response += f"**Category:** {_label(thread.category)}\n"
    response += f"**Status:** {thread.status}\n"
    response += f"**Urgency:** {thread.urgency}\n"
    response += f"**Assigned To:** {_label(thread.assigned_to)}\n"
    response += f"**Started:** {thread.start_time}\n"
    response += f"**Duration:** {format_duration(thread.start_time, now)}\n"

    if thread.last_update_time:
        response += f"**Last Updated:** {thread.last_update_time}\n"
    if thread.summary:
        response += f"\n**Summary:**\n{thread.summary}\n"

    return response


def format_threads_summary(threads: Sequence[ConversationThread]) -> str:
    categories = Counter(thread.category for thread in threads)
    urgencies = Counter(thread.urgency for thread in threads)

    response = "## Conversation Threads Summary\n\n"
    response += f"**Total Active Threads:** {len(threads)}\n\n"
    response += "**By Category:**\n"
    for category, count in categories.items():
        response += f"- {_label(category)}: {count}\n"
    response += "\n**By Urgency:**\n"
    response += f"- High: {urgencies['high']}\n"
    response += f"- Medium: {urgencies['medium']}\n"
    response += f"- Low: {urgencies['low']}\n"
    return response


def format_threads_list(threads: Sequence[ConversationThread]) -> str:
    if not threads:
        return "No conversation threads match your criteria."

    response = "## Active Conversation Threads\n\n"
    for index, thread in enumerate(threads, 1):
        marker = _URGENCY_MARKERS.get(thread.urgency, "⚪")
        response += f"{index}. {marker} **{thread.id}** - {_label(thread.category)}\n"
        response += f"   Assigned to: {_label(thread.assigned_to)}\n"
        response += f"   Started: {thread.start_time}\n\n"
    response += "\nFor more details on a specific thread, ask about it by ID."
    return response


def filter_threads(query: str, threads: Sequence[ConversationThread]) -> List[ConversationThread]:
    """Narrow threads by the urgency or category a query mentions."""
    query = query.lower()
    if "high urgency" in query or "urgent" in query:
        return [thread for thread in threads if thread.urgency == "high"]

    for keywords, category in _CATEGORY_FILTERS:
        if any(keyword in query for keyword in keywords):
            return [thread for thread in threads if thread.category == category.value]

    return list(threads)


def describe_threads(
    query: str, threads: Sequence[ConversationThread], now: Optional[datetime] = None
) -> str:
    """Answer a question about active conversation threads.

    ``thread INQ-...`` returns the details of one thread; "summary" or
    "overview" returns counts by category and urgency; anything else lists
    the (filtered) threads.
    """
    if not threads:
        return "There are no active conversation threads at the moment."

    match = _THREAD_ID.search(query)
    if match:
        thread_id = match.group(1).upper()
        for thread in threads:
            if thread.id == thread_id:
                return format_thread_details(thread, now)
        return (
            f"Conversation thread with ID {thread_id} not found. "
            "Please check the ID and try again."
        )

    filtered = filter_threads(query, threads)
    lowered = query.lower()
    if "summary" in lowered or "overview" in lowered:
        return format_threads_summary(filtered)
    return format_threads_list(filtered)
