"""Tests for settings parsing."""

import pytest
from pydantic import ValidationError

from dental_admin.config import Settings


def test_clinic_api_base_url_joins_prefix() -> None:
    """The trailing slash of the URL does not double up."""
    config = Settings(CLINIC_API_URL="http://clinic.test/", CLINIC_API_PREFIX="/api/v1")

    assert config.clinic_api_base_url == "http://clinic.test/api/v1"


def test_cors_origins_are_split() -> None:
    config = Settings(CORS_ORIGINS="http://a.test, http://b.test,")

    assert config.cors_origins == ["http://a.test", "http://b.test"]


def test_timezone_is_validated() -> None:
    """Only tz database names are accepted."""
    assert Settings(CLINIC_TIMEZONE="America/Bogota").tzinfo.key == "America/Bogota"

    with pytest.raises(ValidationError):
        Settings(CLINIC_TIMEZONE="Mars/Olympus_Mons")


def test_log_level_is_normalized() -> None:
    assert Settings(LOG_LEVEL="debug").log_level == "DEBUG"

    with pytest.raises(ValidationError):
        Settings(LOG_LEVEL="chatty")
