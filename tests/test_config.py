"""Tests for configuration validation at startup."""

import pytest

from linkshelf.core.config import Settings, check_required_configuration

VALID_SECRET = "s" * 64


class TestRequiredConfiguration:
    def test_valid_configuration_passes(self):
        check_required_configuration(Settings(jwt_secret_key=VALID_SECRET))

    def test_missing_secret_aborts_startup(self):
        with pytest.raises(SystemExit):
            check_required_configuration(Settings(jwt_secret_key=""))

    def test_short_secret_aborts_startup(self):
        with pytest.raises(SystemExit):
            check_required_configuration(Settings(jwt_secret_key="too-short"))

    @pytest.mark.parametrize("ttl_ms", [0, -1])
    def test_non_positive_ttl_aborts_startup(self, ttl_ms):
        with pytest.raises(SystemExit):
            check_required_configuration(Settings(jwt_secret_key=VALID_SECRET, token_ttl_ms=ttl_ms))

    def test_redis_backend_requires_url(self):
        with pytest.raises(SystemExit):
            check_required_configuration(
                Settings(jwt_secret_key=VALID_SECRET, revocation_backend="redis", redis_url=None)
            )

    def test_create_app_refuses_bad_configuration(self):
        from linkshelf.main import create_app

        with pytest.raises(SystemExit):
            create_app(Settings(jwt_secret_key=""))


class TestSettings:
    def test_default_ttl_is_one_day(self):
        assert Settings(jwt_secret_key=VALID_SECRET).token_ttl_ms == 86_400_000

    def test_cors_origins_list(self):
        settings = Settings(
            jwt_secret_key=VALID_SECRET,
            cors_origins="http://a.test, http://b.test",
        )

        assert settings.cors_origins_list == ["http://a.test", "http://b.test"]

    def test_sqlite_detection(self):
        assert Settings(jwt_secret_key=VALID_SECRET, database_url="sqlite+aiosqlite:///:memory:").is_sqlite

    def test_memory_backend_warns_outside_sqlite(self):
        settings = Settings(
            jwt_secret_key=VALID_SECRET,
            database_url="postgresql+asyncpg://u:p@db/linkshelf",
            revocation_backend="memory",
        )

        assert any("revocation" in warning.lower() for warning in settings.check_security_configuration())
