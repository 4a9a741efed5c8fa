import os
from unittest.mock import patch

from zealfc.core.config import Settings


def test_defaults_without_env_file():
    """Settings fall back to the documented defaults when nothing is configured."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=None)

    assert settings.REFUND_WINDOW_HOURS == 48
    assert settings.SIGNUP_CREDIT_COST == 1
    assert settings.MAILERSEND_API_KEY == ""
    assert settings.user_pool_issuer is None
    assert settings.admin_pool_issuer is None


def test_values_from_environment():
    """Environment variables override defaults, case-insensitively."""
    env = {
        "refund_window_hours": "24",
        "USER_POOL_ID": "us-east-2_abc",
        "COGNITO_REGION": "us-east-2",
        "ADMIN_USER_POOL_ID": "eu-west-1_admins",
        "ADMIN_COGNITO_REGION": "eu-west-1",
    }
    with patch.dict(os.environ, env):
        settings = Settings(_env_file=None)

    assert settings.REFUND_WINDOW_HOURS == 24
    assert settings.user_pool_issuer == "https://cognito-idp.us-east-2.amazonaws.com/us-east-2_abc"
    assert settings.admin_pool_issuer == "https://cognito-idp.eu-west-1.amazonaws.com/eu-west-1_admins"


def test_env_file_is_read(tmp_path):
    """Values come from the chosen env file."""
    env_file = tmp_path / ".env.custom"
    env_file.write_text("LEAGUE_TIMEZONE=Europe/London\nEMAIL_BRAND=Sunday League\n", encoding="utf-8")

    with patch.dict(os.environ, {}, clear=True):
        settings = Settings(_env_file=str(env_file))

    assert settings.LEAGUE_TIMEZONE == "Europe/London"
    assert settings.EMAIL_BRAND == "Sunday League"
