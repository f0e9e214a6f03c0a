"""Module containing the immutable inputs of the auth token signing pipeline."""
import datetime
import re
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator, Optional

from .clock import format_amz_date, format_datestamp, to_utc
from .exceptions import ConfigurationError, CredentialError, EncodingError

ALGORITHM = 'AWS4-HMAC-SHA256'
SERVICE = 'rds-db'
TERMINATOR = 'aws4_request'
DEFAULT_REGION = 'eu-west-1'
DEFAULT_PORT = 3306
MAX_EXPIRY_SECONDS = 900

_LABEL = r'[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?'
_HOST_PATTERN = re.compile(rf'^(?=.{{1,253}}$){_LABEL}(?:\.{_LABEL})*$')
_ACCESS_KEY_PATTERN = re.compile(r'^[A-Za-z0-9]+$')
_NAMESPACE_PATTERN = re.compile(r'^[a-z0-9]+(?:-[a-z0-9]+)*$')
_CONTROL_CHARACTERS = re.compile(r'[\x00-\x1f\x7f]')


def wipe_buffer(buffer: bytearray) -> None:
    """Overwrite a buffer with zeros in place, then empty it."""
    buffer[:] = bytes(len(buffer))
    buffer.clear()


def _require_text(name: str, value: str) -> None:
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"{name} must be a non-empty string")


def _require_encodable(name: str, value: str) -> None:
    if _CONTROL_CHARACTERS.search(value):
        raise EncodingError(f"{name} contains control characters")
    try:
        value.encode('utf-8')
    except UnicodeEncodeError as e:
        raise EncodingError(f"{name} is not valid UTF-8 text: {e.reason}") from e


class SecretKey:
    """Secret access key material that can be wiped once signing is done.

    The value is never part of ``repr`` or ``str`` output, so a SecretKey can
    travel inside other objects without leaking into logs or tracebacks.
    """

    __slots__ = ('_value',)

    def __init__(self, value: str) -> None:
        if not isinstance(value, str) or not value:
            raise CredentialError("Secret access key must be a non-empty string")
        try:
            self._value = bytearray(value.encode('utf-8'))
        except UnicodeEncodeError as e:
            raise EncodingError(f"Secret access key is not valid UTF-8 text: {e.reason}") from e

    def __repr__(self) -> str:
        return "SecretKey('****')"

    __str__ = __repr__

    @property
    def wiped(self) -> bool:
        return not self._value

    @contextmanager
    def prefixed(self, prefix: bytes) -> Iterator[bytearray]:
        """Yield ``prefix + secret`` in a temporary buffer that is zeroed on exit.

        :param prefix: bytes, prepended to the secret (``b'AWS4'`` for SigV4).
        :raise CredentialError: if the key has already been wiped.
        """
        if self.wiped:
            raise CredentialError("Secret access key has already been wiped")
        material = bytearray(prefix)
        material.extend(self._value)
        try:
            yield material
        finally:
            wipe_buffer(material)

    def wipe(self) -> None:
        wipe_buffer(self._value)


@dataclass(frozen=True)
class CredentialScope:
    """Date, region and service a derived signing key is valid for."""

    datestamp: str
    region: str
    service: str
    terminator: str = TERMINATOR

    def __str__(self) -> str:
        return '/'.join((self.datestamp, self.region, self.service, self.terminator))

    def credential(self, access_key_id: str) -> str:
        return f"{access_key_id}/{self}"


@dataclass(frozen=True)
class SigningContext:
    """Everything needed to sign one auth token.

    ``request_timestamp`` is captured once by the caller and every later
    stage reads it from here, so the canonical request, the credential scope
    and the signing key always agree on the same instant.
    """

    database_user: str
    access_key_id: str
    secret_access_key: SecretKey = field(repr=False)
    host: str
    port: int
    request_timestamp: datetime.datetime
    region: str = DEFAULT_REGION
    service: str = SERVICE
    expiry_seconds: int = MAX_EXPIRY_SECONDS
    session_token: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        _require_text('Database user', self.database_user)
        _require_text('Host', self.host)
        _require_text('Region', self.region)
        _require_text('Service', self.service)
        if not isinstance(self.access_key_id, str) or not self.access_key_id:
            raise CredentialError("Access key id must be a non-empty string")
        if not isinstance(self.secret_access_key, SecretKey):
            raise CredentialError("Secret access key must be wrapped in a SecretKey")

        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ConfigurationError(f"Port must be an integer between 1 and 65535, got {self.port!r}")
        if (isinstance(self.expiry_seconds, bool) or not isinstance(self.expiry_seconds, int)
                or not 0 < self.expiry_seconds <= MAX_EXPIRY_SECONDS):
            raise ConfigurationError(
                f"Expiry must be between 1 and {MAX_EXPIRY_SECONDS} seconds, got {self.expiry_seconds!r}"
            )

        if not _HOST_PATTERN.match(self.host):
            raise EncodingError(f"Host {self.host!r} is not a valid DNS name or IPv4 address")
        if not _ACCESS_KEY_PATTERN.match(self.access_key_id):
            raise EncodingError("Access key id must contain only letters and digits")
        if not _NAMESPACE_PATTERN.match(self.region):
            raise EncodingError(f"Region {self.region!r} is not a valid region name")
        if not _NAMESPACE_PATTERN.match(self.service):
            raise EncodingError(f"Service {self.service!r} is not a valid service name")
        _require_encodable('Database user', self.database_user)
        if self.session_token is not None:
            _require_text('Session token', self.session_token)
            _require_encodable('Session token', self.session_token)

        object.__setattr__(self, 'request_timestamp', to_utc(self.request_timestamp))

    @property
    def amz_date(self) -> str:
        return format_amz_date(self.request_timestamp)

    @property
    def datestamp(self) -> str:
        return format_datestamp(self.request_timestamp)

    @property
    def credential_scope(self) -> CredentialScope:
        return CredentialScope(self.datestamp, self.region, self.service)

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"
