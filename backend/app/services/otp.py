from __future__ import annotations

import secrets
import string

OTP_LENGTH = 6
SESSION_ID_LENGTH = 32
SESSION_ID_ALPHABET = string.ascii_letters + string.digits + "_-"

_OTP_LOWER = 10 ** (OTP_LENGTH - 1)
_OTP_UPPER = 10**OTP_LENGTH


def generate_otp_code() -> str:
    # Range starts at 100000, so the code is always six digits.
    return str(_OTP_LOWER + secrets.randbelow(_OTP_UPPER - _OTP_LOWER))


def generate_session_id(length: int = SESSION_ID_LENGTH) -> str:
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(length))
