from __future__ import annotations

from datetime import date
from typing import Iterable

from coachtrack.domain.common.time import date_str
from coachtrack.domain.stopwatch.ports import SessionGateway


async def daily_total(gateway: SessionGateway, student_id: int, day: date) -> int:
    """Seconds of completed study for one student on one reference date."""
    return int(await gateway.sum_completed_sessions(student_id, date_str(day)))


async def daily_totals(gateway: SessionGateway, student_id: int, days: Iterable[date]) -> list[tuple[date, int]]:
    out: list[tuple[date, int]] = []
    for day in days:
        out.append((day, await daily_total(gateway, student_id, day)))
    return out
