"""Short user-facing strings for every error kind, per locale."""

from __future__ import annotations

from .errors import ErrorKind

DEFAULT_LOCALE = "en"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        ErrorKind.SESSION_EXPIRED: "Session expired. Please request a new verification code.",
        ErrorKind.SIGNUP_DISABLED: (
            "Registration is closed. Please contact an administrator if you need access."
        ),
        ErrorKind.RATE_LIMITED: "Too many requests. Please wait a moment before trying again.",
        ErrorKind.EXPIRED_CODE: "Verification code has expired. Please request a new one.",
        ErrorKind.INVALID_CODE: "Invalid verification code. Please check and try again.",
        ErrorKind.PROVIDER: "Authentication service is unavailable. Please try again later.",
        "otp_sent": "Verification code sent to your email",
        "otp_verified": "Successfully verified",
    },
    "id": {
        ErrorKind.SESSION_EXPIRED: "Sesi berakhir. Silakan minta kode verifikasi baru.",
        ErrorKind.SIGNUP_DISABLED: (
            "Pendaftaran tidak dibuka. Silakan hubungi administrator jika Anda memerlukan akses."
        ),
        ErrorKind.RATE_LIMITED: "Terlalu banyak permintaan. Mohon tunggu sebentar sebelum mencoba lagi.",
        ErrorKind.EXPIRED_CODE: "Kode verifikasi sudah kedaluwarsa. Silakan minta kode baru.",
        ErrorKind.INVALID_CODE: "Kode verifikasi tidak valid. Periksa kembali dan coba lagi.",
        ErrorKind.PROVIDER: "Layanan autentikasi tidak tersedia. Silakan coba lagi nanti.",
        "otp_sent": "Kode verifikasi telah dikirim ke email Anda",
        "otp_verified": "Verifikasi berhasil",
    },
}


def message_for(key: ErrorKind | str, locale: str = DEFAULT_LOCALE) -> str:
    catalogue = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]
    return catalogue.get(key) or MESSAGES[DEFAULT_LOCALE][key]
