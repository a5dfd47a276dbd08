from __future__ import annotations

import html

from aiogram import Router
from aiogram.filters import CommandStart
from aiogram.types import Message

from coachtrack.config import Settings
from coachtrack.domain.common.errors import PersistenceFailure
from coachtrack.domain.common.time import to_iso
from coachtrack.infra.clock.system_clock import SystemClock
from coachtrack.infra.db.repo.profiles_sqlite import COACH, STUDENT, ProfilesRepo
from coachtrack.ui.telegram.keyboards.mainmenu import main_menu_kb

router = Router()

HELP_STUDENT = (
    "Komutlar:\n"
    "/sw – kronometre\n"
    "/week – son 7 günün çalışma süreleri\n"
    "/join &lt;koç_id&gt; – koçuna bağlan\n"
    "/logout – oturumu kapat"
)

HELP_COACH = (
    "Komutlar:\n"
    "/students – öğrencilerin ve bugünkü süreleri\n"
    "/week &lt;öğrenci_id&gt; – öğrencinin son 7 günü\n"
    "/sw – kendi kronometren"
)


@router.message(CommandStart())
async def cmd_start(message: Message, profiles: ProfilesRepo, clock: SystemClock, settings: Settings):
    user = message.from_user
    role = COACH if user.id in settings.coach_telegram_ids else STUDENT
    try:
        profile = await profiles.upsert(
            user_id=user.id,
            name=user.full_name or str(user.id),
            role=role,
            now_iso=to_iso(clock.now()),
        )
    except PersistenceFailure as e:
        await message.answer(e.user_message)
        return

    role_label = "Koç" if profile.is_coach else "Öğrenci"
    text = f"Hoş geldin, {html.escape(profile.name)}!\nRolün: {role_label}\n"
    if profile.is_coach:
        text += f"Koç kimliğin: <code>{profile.id}</code>\n\n{HELP_COACH}"
    else:
        text += f"\n{HELP_STUDENT}"
    await message.answer(text, reply_markup=main_menu_kb(profile.is_coach))
