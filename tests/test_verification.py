from __future__ import annotations

import base64

import pyotp
import pytest

from app.verification import DevCodeVerifier, TotpCodeVerifier


def test_dev_verifier_accepts_any_six_digits():
    v = DevCodeVerifier()
    assert v.verify("op-ana", "123456")
    assert v.verify("op-ana", " 000000 ")
    assert not v.verify("op-ana", "12345")
    assert not v.verify("op-ana", "abcdef")
    assert not v.verify("op-ana", "")


def test_totp_rfc6238_vector():
    # RFC 6238 appendix B, SHA-1, T=59 -> 94287082 (8 digits); 6-digit form is the last six
    secret = base64.b32encode(b"12345678901234567890").decode("ascii")
    assert TotpCodeVerifier._totp(secret).at(59) == "287082"


def test_provisioning_secret_matches_authenticator_codes():
    v = TotpCodeVerifier("operator-secret", clock=lambda: 1_767_225_600.0)
    authenticator = pyotp.TOTP(v.provisioning_secret("op-ana"))
    assert v.verify("op-ana", authenticator.at(1_767_225_600))


def test_totp_accepts_current_and_adjacent_step():
    now = [1_767_225_600.0]
    v = TotpCodeVerifier("operator-secret", clock=lambda: now[0])
    code = v.code_for("op-ana")
    assert v.verify("op-ana", code)

    now[0] += 30
    assert v.verify("op-ana", code)

    now[0] += 60
    assert not v.verify("op-ana", code)


def test_totp_codes_are_per_operator():
    v = TotpCodeVerifier("operator-secret", clock=lambda: 1_767_225_600.0)
    assert v.code_for("op-ana") != v.code_for("op-luis")
    assert not v.verify("op-ana", "not-a-code")


def test_totp_requires_secret():
    with pytest.raises(ValueError):
        TotpCodeVerifier("")
