"""Tests for environment-driven configuration."""

from __future__ import annotations

import pytest

from rds_iam_auth.config import ConnectionSettings, credentials_from_environment
from rds_iam_auth.exceptions import ConfigurationError, CredentialError


class TestCredentialsFromEnvironment:
    def test_reads_keys(self) -> None:
        environ = {"AWS_ACCESS_KEY_ID": "AKIAEXAMPLE", "AWS_SECRET_ACCESS_KEY": "secretEXAMPLE"}
        assert credentials_from_environment(environ) == ("AKIAEXAMPLE", "secretEXAMPLE", None)

    def test_reads_session_token(self) -> None:
        environ = {
            "AWS_ACCESS_KEY_ID": "ASIAEXAMPLE",
            "AWS_SECRET_ACCESS_KEY": "secretEXAMPLE",
            "AWS_SESSION_TOKEN": "FQoGZXIv",
        }
        assert credentials_from_environment(environ)[2] == "FQoGZXIv"

    @pytest.mark.parametrize(
        "environ",
        [{}, {"AWS_ACCESS_KEY_ID": "AKIAEXAMPLE"}, {"AWS_ACCESS_KEY_ID": "", "AWS_SECRET_ACCESS_KEY": "x"}],
    )
    def test_missing_credentials(self, environ: dict) -> None:
        with pytest.raises(CredentialError, match="not found in environment"):
            credentials_from_environment(environ)

    def test_defaults_to_os_environ(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIAENV")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secretENV")
        monkeypatch.delenv("AWS_SESSION_TOKEN", raising=False)
        assert credentials_from_environment() == ("AKIAENV", "secretENV", None)


class TestConnectionSettings:
    def test_defaults(self) -> None:
        settings = ConnectionSettings.from_environment({})
        assert settings == ConnectionSettings()
        assert settings.region == "eu-west-1"
        assert settings.port == 3306
        assert settings.expiry_seconds == 900
        assert settings.auth_retries == 1

    def test_region_precedence(self) -> None:
        environ = {"AWS_DEFAULT_REGION": "us-east-1", "AWS_REGION": "us-west-2"}
        assert ConnectionSettings.from_environment(environ).region == "us-west-2"
        environ["RDS_IAM_REGION"] = "ap-south-1"
        assert ConnectionSettings.from_environment(environ).region == "ap-south-1"

    def test_reads_overrides(self) -> None:
        settings = ConnectionSettings.from_environment({
            "RDS_IAM_PORT": "3307",
            "RDS_IAM_TOKEN_EXPIRY": "300",
            "RDS_IAM_SSL_CA": "/etc/ssl/rds-global-bundle.pem",
            "RDS_IAM_CONNECT_TIMEOUT": "5",
            "RDS_IAM_DATABASE": "app",
            "RDS_IAM_AUTH_RETRIES": "0",
        })
        assert settings.port == 3307
        assert settings.expiry_seconds == 300
        assert settings.ssl_ca == "/etc/ssl/rds-global-bundle.pem"
        assert settings.connect_timeout == 5
        assert settings.database == "app"
        assert settings.auth_retries == 0

    def test_non_integer_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="RDS_IAM_PORT"):
            ConnectionSettings.from_environment({"RDS_IAM_PORT": "mysql"})

    def test_more_than_one_retry_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            ConnectionSettings(auth_retries=3)
