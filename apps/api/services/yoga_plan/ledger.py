"""
Usage / Progress Ledger

Bookkeeping when a member finishes a session. Both sides move together:

    plan    sessions_completed, total_practice_time, last_session_date, completion_rate
    member  sessions_completed, total_minutes, last_session_date,
            current_streak, longest_streak, achievements

Counters only ever grow. Streaks count consecutive UTC calendar days with
at least one completed session.
"""

import logging
from datetime import date, datetime, timezone
from typing import Dict, List, Optional

from models import Member, YogaPlan

from .constants import MINUTE_MILESTONES, SESSION_MILESTONES, STREAK_MILESTONES

logger = logging.getLogger(__name__)


def next_streak(current_streak: int, last_session_date: Optional[date], today: date) -> int:
    """
    Streak after practicing on `today`.

    Same day keeps the streak, the following day extends it, any gap
    starts over at 1.
    """
    if last_session_date is None:
        return 1
    gap_days = (today - last_session_date).days
    if gap_days <= 0:
        # Same day (or a clock behind the last record): nothing new to count
        return max(current_streak, 1)
    if gap_days == 1:
        return current_streak + 1
    return 1


def new_achievements(member: Member, today: date) -> List[Dict[str, str]]:
    """Milestones reached by the member's current counters and not yet awarded."""
    earned = {a.get("name") for a in (member.achievements or [])}
    awarded = []

    checks = (
        (SESSION_MILESTONES, member.sessions_completed),
        (STREAK_MILESTONES, member.current_streak),
        (MINUTE_MILESTONES, member.total_minutes),
    )
    for milestones, value in checks:
        for name, (description, threshold) in milestones.items():
            if name not in earned and (value or 0) >= threshold:
                awarded.append({
                    "name": name,
                    "earned_date": today.isoformat(),
                    "description": description,
                })
    return awarded


def utc_day(moment: Optional[datetime]) -> Optional[date]:
    """Calendar day of `moment` in UTC. Naive values are taken as UTC already."""
    if moment is None:
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def apply_session_completion(
    plan: YogaPlan,
    member: Member,
    duration_minutes: int,
    now: datetime,
) -> List[Dict[str, str]]:
    """
    Record one completed session on both the plan and the member.

    Caller owns the transaction; nothing here commits.

    Returns:
        Achievements newly awarded by this session
    """
    plan.sessions_completed = (plan.sessions_completed or 0) + 1
    plan.total_practice_time = (plan.total_practice_time or 0) + duration_minutes
    plan.last_session_date = now
    if plan.total_sessions:
        plan.completion_rate = min(1.0, round(plan.sessions_completed / plan.total_sessions, 4))

    # Postgres hands aware values back in the session timezone
    today = utc_day(now)
    last = utc_day(member.last_session_date)
    member.current_streak = next_streak(member.current_streak or 0, last, today)
    member.longest_streak = max(member.longest_streak or 0, member.current_streak)
    member.sessions_completed = (member.sessions_completed or 0) + 1
    member.total_minutes = (member.total_minutes or 0) + duration_minutes
    member.last_session_date = now

    awarded = new_achievements(member, today)
    if awarded:
        # New list object so the JSON column registers the change
        member.achievements = list(member.achievements or []) + awarded
        logger.info(f"Member {member.id} earned: {', '.join(a['name'] for a in awarded)}")

    return awarded
