"""
Statistics service.

Dashboard counters computed from the current state; nothing here
mutates AppState.
"""
from datetime import datetime
from zoneinfo import ZoneInfo

from schemas import AppState, StatsResponse


def compute_stats(state: AppState, now: datetime, timezone_name: str) -> StatsResponse:
    """
    Return the three dashboard counters.

    - total_participants: every admission ever recorded (open or closed)
    - currently_in: occupied slots right now
    - completed_today: records closed on today's local date
    """
    zone = ZoneInfo(timezone_name)
    today = now.astimezone(zone).date()

    completed_today = sum(
        1
        for record in state.history
        if record.exit_time is not None and record.exit_time.astimezone(zone).date() == today
    )

    return StatsResponse(
        total_participants=len(state.history),
        currently_in=sum(1 for slot in state.slots if slot.is_occupied),
        completed_today=completed_today,
    )
