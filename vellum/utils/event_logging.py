"""
Render event logging utilities.

Appends render lifecycle events (state transitions, cache hits, persistence
outcomes) to a JSON Lines file, one object per line. This is the coarse,
machine-readable companion to the detailed loguru output of each context.

Usage:
    from vellum.utils.event_logging import log_render_event, get_recent_events

    log_render_event(
        events_file=Path("outs/logs/render_events.log"),
        event_type="state_change",
        session_id="sess-42",
        source="session",
        new_state="compiling",
    )

    events = get_recent_events(events_file, n=20, event_type="state_change")
"""

import json
from pathlib import Path
from typing import List, Optional

from vellum.utils.timestamp import now_exact


def log_render_event(
    events_file: Optional[Path], event_type: str, session_id: str, source: str, **extra_fields
) -> None:
    """
    Append an event to the render event log.

    Does nothing when events_file is None (event logging disabled).

    Args:
        events_file: JSON Lines file to append to
        event_type: Type of event (e.g., "state_change", "cache_hit", "persist_skipped")
        session_id: Session identifier
        source: Event source (e.g., "session", "cache", "cli")
        **extra_fields: Additional event-specific fields (must be JSON serializable)
    """
    if events_file is None:
        return

    events_file = Path(events_file)
    events_file.parent.mkdir(parents=True, exist_ok=True)

    event = {
        "timestamp": now_exact(),
        "event_type": event_type,
        "session_id": session_id,
        "source": source,
        **extra_fields,
    }

    with open(events_file, "a", encoding="utf-8") as f:
        f.write(json.dumps(event, default=str) + "\n")


def get_recent_events(
    events_file: Path,
    n: int = 10,
    session_id: Optional[str] = None,
    event_type: Optional[str] = None,
) -> List[dict]:
    """
    Get the last n events from the render event log, optionally filtered.

    Args:
        events_file: JSON Lines file to read
        n: Number of recent events to return (default: 10)
        session_id: Filter to only events for this session (optional)
        event_type: Filter to only events of this type (optional)

    Returns:
        List of event dicts (most recent last)
    """
    events_file = Path(events_file)
    if not events_file.exists():
        return []

    events = []
    with open(events_file, "r", encoding="utf-8") as f:
        for line in f:
            try:
                events.append(json.loads(line.strip()))
            except json.JSONDecodeError:
                # Skip malformed lines
                continue

    if session_id:
        events = [e for e in events if e.get("session_id") == session_id]

    if event_type:
        events = [e for e in events if e.get("event_type") == event_type]

    return events[-n:] if len(events) > n else events
