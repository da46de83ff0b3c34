"""
Time canonicalization for calendar writes.

Every "HH:MM" the planner emits is validated, snapped to the 5-minute grid
and clamped to the day, then combined into a start/end window. Each
adjustment is logged and recorded on the window so it can be reported back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

logger = logging.getLogger(__name__)

SLOT_MINUTES = 5
LAST_MINUTE = 23 * 60 + 59
LAST_SLOT = 23 * 60 + 55
DEFAULT_DURATION_MINUTES = 60


@dataclass(frozen=True)
class TimeValue:
    minutes: int
    label: str


@dataclass(frozen=True)
class CanonicalTimeWindow:
    start_minutes: int
    end_minutes: int
    start_label: str
    end_label: str
    adjustments: tuple[str, ...] = field(default_factory=tuple)

    @property
    def duration_minutes(self) -> int:
        return self.end_minutes - self.start_minutes


def format_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def parse_time(raw: str | None) -> int | None:
    """Parse an exact "HH:MM" into minutes past midnight, or None when malformed."""
    if raw is None:
        return None
    parts = raw.strip().split(":")
    if len(parts) != 2 or not all(p.strip().isdigit() for p in parts):
        return None
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour * 60 + minute


def round_to_slot(total: int) -> int:
    """Round to the nearest multiple of 5 minutes; remainders of 3+ round up."""
    remainder = total % SLOT_MINUTES
    if remainder == 0:
        return total
    if remainder >= 3:
        return total + (SLOT_MINUTES - remainder)
    return total - remainder


def canonicalize_time_value(raw: str | None, context: str, label: str) -> TimeValue | None:
    """
    Validate and snap a single "HH:MM" value.

    Returns None (and logs why) when the value is missing or malformed.
    """
    total = parse_time(raw)
    if total is None:
        logger.warning("Invalid %s for %s: %r", label, context, raw)
        return None

    rounded = round_to_slot(total)
    if rounded > LAST_SLOT:
        rounded = LAST_SLOT
    elif rounded < 0:
        rounded = 0

    result = TimeValue(rounded, format_minutes(rounded))
    if rounded != total:
        logger.info("Adjusted %s for %s from %s to %s", label, context, raw, result.label)
    return result


def canonicalize_window(
    start_raw: str | None,
    end_raw: str | None,
    duration_minutes: int | None,
    context: str,
) -> CanonicalTimeWindow | None:
    """
    Build a start/end window.

    Precedence: explicit end → positive duration → default 60 minutes.
    Returns None when the start time (or an explicit end time) is malformed.
    """
    start = canonicalize_time_value(start_raw, context, "start time")
    if start is None:
        return None

    adjustments: list[str] = []
    if parse_time(start_raw) != start.minutes:
        adjustments.append(f"start time {start_raw} rounded to {start.label}")

    if end_raw:
        end = canonicalize_time_value(end_raw, context, "end time")
        if end is None:
            return None
        end_minutes = end.minutes
        if parse_time(end_raw) != end.minutes:
            adjustments.append(f"end time {end_raw} rounded to {end.label}")
        if end_minutes <= start.minutes:
            bumped = min(start.minutes + SLOT_MINUTES, LAST_MINUTE)
            logger.info(
                "End time %s for %s does not follow start %s; using %s",
                end.label, context, start.label, format_minutes(bumped),
            )
            adjustments.append(
                f"end time {end.label} moved to {format_minutes(bumped)} to follow the start"
            )
            end_minutes = bumped
    elif duration_minutes is not None and duration_minutes > 0:
        candidate = start.minutes + duration_minutes
        if candidate > LAST_MINUTE:
            end_minutes = LAST_MINUTE
            logger.info(
                "Duration %d min for %s runs past midnight; clamping end to 23:59",
                duration_minutes, context,
            )
            adjustments.append("end clamped to 23:59")
        else:
            end_minutes = min(round_to_slot(candidate), LAST_SLOT)
            end_minutes = max(end_minutes, min(start.minutes + SLOT_MINUTES, LAST_MINUTE))
            if end_minutes != candidate:
                logger.info(
                    "Adjusted end for %s from %s to %s",
                    context, format_minutes(candidate), format_minutes(end_minutes),
                )
                adjustments.append(
                    f"end time {format_minutes(candidate)} rounded to {format_minutes(end_minutes)}"
                )
    else:
        end_minutes = min(start.minutes + DEFAULT_DURATION_MINUTES, LAST_MINUTE)

    return CanonicalTimeWindow(
        start_minutes=start.minutes,
        end_minutes=end_minutes,
        start_label=start.label,
        end_label=format_minutes(end_minutes),
        adjustments=tuple(adjustments),
    )


def parse_date(raw: str | None) -> date | None:
    """Parse "YYYY-MM-DD", or None when missing or malformed."""
    if not raw or not raw.strip():
        return None
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        logger.warning("Invalid date %r", raw)
        return None


def format_range(start: datetime, end: datetime) -> str:
    return f"{start.strftime('%H:%M')}-{end.strftime('%H:%M')}"


def at_minutes(day: date, minutes: int) -> datetime:
    """``day`` at ``minutes`` past midnight."""
    return datetime.combine(day, time.min) + timedelta(minutes=minutes)
