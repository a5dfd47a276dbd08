from __future__ import annotations


class CoachtrackError(Exception):
    """Base for errors the bot reports to the user instead of crashing."""

    user_message = "Bir hata oluştu. Lütfen tekrar deneyin."


class NotAuthenticated(CoachtrackError):
    user_message = "Oturum bulunamadı. Lütfen /start ile giriş yapın."


class PersistenceFailure(CoachtrackError):
    """A gateway call failed; the stopwatch kept its previous state."""

    user_message = "Kayıt başarısız. Lütfen tekrar deneyin."

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed" + (f": {detail}" if detail else ""))


class StaleSessionConflict(CoachtrackError):
    """An abandoned active session was found and discarded."""

    user_message = "Yarım kalmış eski bir oturum bulundu ve temizlendi."

    def __init__(self, session_id: str, age_hours: float) -> None:
        self.session_id = session_id
        self.age_hours = age_hours
        super().__init__(f"active session {session_id} is {age_hours:.1f}h old")
