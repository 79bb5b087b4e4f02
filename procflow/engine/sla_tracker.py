"""SLA Tracker - Deadline status and per-state dwell intervals"""
from datetime import datetime, timedelta
from typing import Dict, Optional

from ..config.settings import settings
from ..domain.models import SlaState, StateInterval
from ..domain.enums import SlaStatus
from ..utils.time import add_minutes, ensure_utc, format_duration, seconds_between


class SlaTracker:
    """
    Track process deadlines and time spent in each state

    recompute_status is pure; the interval helpers mutate the SlaState
    they are given, which the engine only ever does on a working copy.
    """

    def __init__(self, at_risk_window: Optional[timedelta] = None):
        self.at_risk_window = at_risk_window or timedelta(hours=settings.sla_at_risk_hours)

    def recompute_status(
        self,
        deadline: Optional[datetime],
        now: datetime,
        at_risk_window: Optional[timedelta] = None
    ) -> SlaStatus:
        """
        Derive SLA status from the deadline

        overdue once now passes the deadline, atrisk when the deadline is
        within the window, otherwise within. No deadline means within.
        """
        if deadline is None:
            return SlaStatus.WITHIN

        window = at_risk_window if at_risk_window is not None else self.at_risk_window
        remaining = ensure_utc(deadline) - ensure_utc(now)

        if remaining < timedelta(0):
            return SlaStatus.OVERDUE
        if remaining <= window:
            return SlaStatus.AT_RISK
        return SlaStatus.WITHIN

    def refresh(self, sla: SlaState, now: datetime) -> SlaState:
        sla.status = self.recompute_status(sla.deadline, now)
        sla.evaluated_at = now
        return sla

    def calculate_deadline(self, start: datetime, minutes: Optional[int]) -> Optional[datetime]:
        if not minutes:
            return None
        return add_minutes(start, minutes)

    def open_interval(self, sla: SlaState, state: str, now: datetime) -> StateInterval:
        interval = StateInterval(state=state, entered_at=now)
        sla.time_in_states.append(interval)
        return interval

    def close_open_interval(self, sla: SlaState, now: datetime) -> Optional[StateInterval]:
        """Close the open interval (if any) and stamp its duration"""
        for interval in reversed(sla.time_in_states):
            if interval.is_open:
                interval.exited_at = now
                interval.duration_seconds = max(0.0, seconds_between(interval.entered_at, now))
                return interval
        return None

    def dwell_summary(self, sla: SlaState, now: datetime) -> Dict[str, Dict[str, object]]:
        """
        Total time spent per state

        The open interval counts up to now. Returns
        {state: {"seconds": float, "visits": int, "display": "2h 30m"}}.
        """
        summary: Dict[str, Dict[str, object]] = {}
        for interval in sla.time_in_states:
            if interval.is_open:
                seconds = max(0.0, seconds_between(interval.entered_at, now))
            else:
                seconds = interval.duration_seconds

            entry = summary.setdefault(interval.state, {"seconds": 0.0, "visits": 0})
            entry["seconds"] += seconds
            entry["visits"] += 1

        for entry in summary.values():
            entry["display"] = format_duration(int(entry["seconds"] // 60))
        return summary
