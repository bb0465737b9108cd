from __future__ import annotations


class NafathError(Exception):
    """Base error for the Nafath flow. ``message`` is safe to show to applicants."""

    default_message = "حدث خطأ في خدمة نفاذ"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotConfigured(NafathError):
    default_message = (
        "نفاذ غير مكون بشكل صحيح. يرجى إدخال البيانات يدوياً بدلاً من ذلك."
    )


class InvalidInput(NafathError):
    default_message = "قيمة الجنس غير صحيحة"


class InvalidOrExpiredSession(NafathError):
    default_message = "جلسة غير صالحة أو منتهية الصلاحية"


class SessionExpired(InvalidOrExpiredSession):
    default_message = "انتهت صلاحية الجلسة. يرجى المحاولة مرة أخرى."


class VerificationFailed(NafathError):
    default_message = "خطأ في التحقق من نفاذ. يرجى المحاولة مرة أخرى."


class ProviderError(Exception):
    """Failure talking to Nafath. Carries details for server logs only."""

    def __init__(
        self,
        message: str,
        *,
        endpoint: str,
        status_code: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body

    def __str__(self) -> str:
        parts = [self.args[0], f"endpoint={self.endpoint}"]
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        if self.body:
            parts.append(f"body={self.body!r}")
        return " ".join(parts)
