# app/verification.py
from __future__ import annotations

import base64
import hashlib
import hmac
import re
import time
from typing import Callable, Protocol

import pyotp

_SIX_DIGITS = re.compile(r"^\d{6}$")


class CodeVerifier(Protocol):
    def verify(self, subject: str, code: str) -> bool: ...


class DevCodeVerifier:
    """Accepts any 6-digit code. Never selected outside dev (see validate_env_settings)."""

    def verify(self, subject: str, code: str) -> bool:
        return bool(_SIX_DIGITS.match((code or "").strip()))


class TotpCodeVerifier:
    """
    RFC 6238 codes (30s step, 6 digits, SHA-1) keyed per operator:
    key = HMAC-SHA256(server_secret, subject), base32 for the authenticator.
    Accepts +/-1 step of drift.
    """

    STEP_SECONDS = 30
    DIGITS = 6

    def __init__(self, secret: str, *, clock: Callable[[], float] = time.time, drift_steps: int = 1):
        if not secret:
            raise ValueError("TotpCodeVerifier requires a secret")
        self._secret = secret.encode("utf-8")
        self._clock = clock
        self._drift = drift_steps

    def provisioning_secret(self, subject: str) -> str:
        """Base32 secret an operator enrolls in their authenticator app."""
        key = hmac.new(self._secret, subject.encode("utf-8"), hashlib.sha256).digest()
        return base64.b32encode(key).decode("ascii")

    @classmethod
    def _totp(cls, base32_secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(base32_secret, digits=cls.DIGITS, interval=cls.STEP_SECONDS)

    def code_for(self, subject: str, *, at: float | None = None) -> str:
        return self._totp(self.provisioning_secret(subject)).at(int(self._clock() if at is None else at))

    def verify(self, subject: str, code: str) -> bool:
        code = (code or "").strip()
        if not _SIX_DIGITS.match(code):
            return False
        totp = self._totp(self.provisioning_secret(subject))
        return totp.verify(code, for_time=int(self._clock()), valid_window=self._drift)


def get_code_verifier(settings) -> CodeVerifier:
    mode = (settings.CODE_VERIFIER_MODE or "dev").strip().lower()
    if mode == "totp":
        return TotpCodeVerifier(settings.OPERATOR_CODE_SECRET)
    if mode == "dev":
        return DevCodeVerifier()
    raise RuntimeError(f"Unsupported CODE_VERIFIER_MODE: {mode}")
