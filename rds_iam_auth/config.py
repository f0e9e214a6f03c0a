"""Module containing the environment-driven configuration."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .exceptions import ConfigurationError, CredentialError
from .signing_context import DEFAULT_PORT, DEFAULT_REGION, MAX_EXPIRY_SECONDS


def credentials_from_environment(
    environ: Optional[Mapping[str, str]] = None
) -> Tuple[str, str, Optional[str]]:
    """Read AWS credentials from the environment.

    :param environ: Optional[Mapping[str, str]], defaults to ``os.environ``.
    :raise CredentialError: if the access key or secret key is not set.
    :return: Tuple[str, str, Optional[str]], access key, secret key and session token.
    """
    environ = os.environ if environ is None else environ
    access_key = environ.get('AWS_ACCESS_KEY_ID')
    secret_key = environ.get('AWS_SECRET_ACCESS_KEY')

    if not access_key or not secret_key:
        raise CredentialError("AWS credentials not found in environment")

    return access_key, secret_key, environ.get('AWS_SESSION_TOKEN') or None


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    value = environ.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


@dataclass(frozen=True)
class ConnectionSettings:
    """Connection parameters that are fixed for a deployment rather than per call."""

    region: str = DEFAULT_REGION
    port: int = DEFAULT_PORT
    expiry_seconds: int = MAX_EXPIRY_SECONDS
    ssl_ca: Optional[str] = None
    connect_timeout: int = 10
    database: Optional[str] = None
    auth_retries: int = 1

    def __post_init__(self) -> None:
        if not self.region:
            raise ConfigurationError("Region must not be empty")
        if self.connect_timeout <= 0:
            raise ConfigurationError("Connect timeout must be positive")
        if self.auth_retries not in (0, 1):
            raise ConfigurationError("Auth retries must be 0 or 1")

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> 'ConnectionSettings':
        environ = os.environ if environ is None else environ
        region = (
            environ.get('RDS_IAM_REGION')
            or environ.get('AWS_REGION')
            or environ.get('AWS_DEFAULT_REGION')
            or DEFAULT_REGION
        )
        return cls(
            region=region,
            port=_int_setting(environ, 'RDS_IAM_PORT', DEFAULT_PORT),
            expiry_seconds=_int_setting(environ, 'RDS_IAM_TOKEN_EXPIRY', MAX_EXPIRY_SECONDS),
            ssl_ca=environ.get('RDS_IAM_SSL_CA') or None,
            connect_timeout=_int_setting(environ, 'RDS_IAM_CONNECT_TIMEOUT', 10),
            database=environ.get('RDS_IAM_DATABASE') or None,
            auth_retries=_int_setting(environ, 'RDS_IAM_AUTH_RETRIES', 1),
        )
