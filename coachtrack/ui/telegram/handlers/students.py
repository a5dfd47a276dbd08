from __future__ import annotations

import html

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message

from coachtrack.domain.common.errors import PersistenceFailure
from coachtrack.domain.common.time import date_str, fmt_total, last_days, reference_date
from coachtrack.domain.stopwatch.models import PAUSED
from coachtrack.domain.stopwatch.totals import daily_total, daily_totals
from coachtrack.infra.clock.system_clock import SystemClock
from coachtrack.infra.db.repo.profiles_sqlite import Profile, ProfilesRepo
from coachtrack.infra.db.repo.sessions_sqlite import SessionsSqliteRepo
from coachtrack.ui.telegram.keyboards.mainmenu import STUDENTS, WEEK

router = Router()

WEEK_DAYS = 7


def _arg(message: Message) -> str:
    parts = (message.text or "").strip().split(maxsplit=1)
    return parts[1].strip() if len(parts) == 2 else ""


@router.message(Command("students"))
@router.message(F.text == STUDENTS)
async def cmd_students(message: Message, profile: Profile, profiles: ProfilesRepo, sessions: SessionsSqliteRepo, clock: SystemClock):
    if not profile.is_coach:
        return await message.answer("Bu komut sadece koçlar içindir.")

    today = reference_date(clock.now(), clock.tz)
    try:
        students = await profiles.list_students(profile.id)
        lines = []
        for s in students:
            total = await daily_total(sessions, s.id, today)
            active = await sessions.get_active_session(s.id)
            mark = ""
            if active is not None:
                mark = " ⏸" if active.state == PAUSED else " ⏱"
            lines.append(f"• {html.escape(s.name)} (<code>{s.id}</code>){mark}: {fmt_total(total)}")
    except PersistenceFailure as e:
        return await message.answer(e.user_message)

    if not lines:
        return await message.answer(
            "Henüz atanmış öğrenci yok.\n"
            f"Öğrencilerin şu komutla bağlanabilir: /join {profile.id}"
        )
    await message.answer(f"👥 <b>Öğrencilerin</b> ({date_str(today)})\n\n" + "\n".join(lines))


@router.message(Command("join"))
async def cmd_join(message: Message, profile: Profile, profiles: ProfilesRepo):
    if profile.is_coach:
        return await message.answer("Koçlar başka bir koça bağlanamaz.")
    raw = _arg(message)
    if not raw.isdigit():
        return await message.answer("Kullanım: /join &lt;koç_id&gt;")

    try:
        coach = await profiles.get(int(raw))
        if coach is None or not coach.is_coach:
            return await message.answer("Bu kimliğe sahip bir koç bulunamadı.")
        await profiles.set_coach(student_id=profile.id, coach_id=coach.id)
    except PersistenceFailure as e:
        return await message.answer(e.user_message)
    await message.answer(f"✅ Koçun artık {html.escape(coach.name)}.")


@router.message(Command("week"))
@router.message(F.text == WEEK)
async def cmd_week(message: Message, profile: Profile, profiles: ProfilesRepo, sessions: SessionsSqliteRepo, clock: SystemClock):
    raw = _arg(message) if (message.text or "").startswith("/") else ""
    target = profile

    try:
        if raw:
            if not raw.isdigit():
                return await message.answer("Kullanım: /week &lt;öğrenci_id&gt;")
            student = await profiles.get(int(raw))
            # plain equality check, not a security boundary
            if student is None or student.coach_id != profile.id:
                return await message.answer("Bu öğrenci sana bağlı değil.")
            target = student

        today = reference_date(clock.now(), clock.tz)
        totals = await daily_totals(sessions, target.id, last_days(today, WEEK_DAYS))
        today_sessions = await sessions.list_completed_sessions(target.id, date_str(today))
    except PersistenceFailure as e:
        return await message.answer(e.user_message)

    lines = [f"• {date_str(d)}: {fmt_total(sec)}" for d, sec in totals]
    week_sum = sum(sec for _, sec in totals)
    text = (
        f"📅 <b>{html.escape(target.name)}</b> – son {WEEK_DAYS} gün\n\n"
        + "\n".join(lines)
        + f"\n\nToplam: <b>{fmt_total(week_sum)}</b>\n"
        f"Bugün kaydedilen oturum: {len(today_sessions)}"
    )
    await message.answer(text)
