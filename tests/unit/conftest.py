"""
Unit tests read configuration only from monkeypatch.setenv(): the project's
.env file is ignored and service variables exported in the shell are cleared.
"""

import pytest

_SERVICE_ENV = (
    "ENV",
    "MONGODB_URI",
    "REDIS_URI",
    "JWT_SECRET",
    "ADMIN_TOKEN",
    "BREVO_API_KEY",
    "OTP_LENGTH",
    "OTP_ALPHABET",
    "OTP_TTL_SECONDS",
    "MAX_FAILED_ATTEMPTS",
    "LOCKOUT_COOLDOWN_SECONDS",
)


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})
    for name in _SERVICE_ENV:
        monkeypatch.delenv(name, raising=False)
