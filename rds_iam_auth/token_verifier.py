"""Module reproducing the server-side checks applied to an auth token."""
import datetime
import hmac
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from urllib.parse import unquote

from .clock import format_datestamp, parse_amz_date, to_utc
from .exceptions import RdsIamAuthError, TokenFormatError
from .request_signer import build_canonical_request, sign
from .signing_context import ALGORITHM, TERMINATOR, CredentialScope, SecretKey, SigningContext

_REQUIRED_PARAMS = (
    'Action',
    'DBUser',
    'X-Amz-Algorithm',
    'X-Amz-Credential',
    'X-Amz-Date',
    'X-Amz-Expires',
    'X-Amz-SignedHeaders',
)


def _is_ascii_number(value: str) -> bool:
    return value.isascii() and value.isdecimal()


@dataclass(frozen=True)
class ParsedAuthToken:
    host: str
    port: int
    query_string: str
    params: Tuple[Tuple[str, str], ...]
    signature: str

    @property
    def param_map(self) -> Dict[str, str]:
        return dict(self.params)

    @property
    def issued_at(self) -> datetime.datetime:
        return parse_amz_date(self.param_map['X-Amz-Date'])

    @property
    def expires_in(self) -> int:
        return int(self.param_map['X-Amz-Expires'])

    @property
    def expires_at(self) -> datetime.datetime:
        return self.issued_at + datetime.timedelta(seconds=self.expires_in)

    @property
    def database_user(self) -> str:
        return unquote(self.param_map['DBUser'])

    @property
    def session_token(self) -> Optional[str]:
        token = self.param_map.get('X-Amz-Security-Token')
        return unquote(token) if token is not None else None

    @property
    def _credential(self) -> Tuple[str, ...]:
        return tuple(unquote(self.param_map['X-Amz-Credential']).split('/'))

    @property
    def access_key_id(self) -> str:
        return self._credential[0]

    @property
    def credential_scope(self) -> CredentialScope:
        _, datestamp, region, service, terminator = self._credential
        return CredentialScope(datestamp, region, service, terminator)

    def is_valid_at(self, instant: datetime.datetime) -> bool:
        """Tell whether the token is inside its validity window at ``instant``.

        The window is closed: a 900 second token issued at T is accepted from
        T up to and including T+900s.

        :raise ConfigurationError: if ``instant`` is a naive datetime.
        """
        elapsed = (to_utc(instant) - self.issued_at).total_seconds()
        return 0 <= elapsed <= self.expires_in


def parse_auth_token(token: str) -> ParsedAuthToken:
    """Split an auth token into endpoint, query parameters and signature.

    :param token: str, value produced by ``RequestSigner.generate_auth_token``.
    :raise TokenFormatError: if the token is malformed.
    :return: ParsedAuthToken, the token's parts.
    """
    token = str(token)
    endpoint, separator, query = token.partition('/?')
    if not separator:
        raise TokenFormatError("Auth token has no query string")
    host, separator, port = endpoint.rpartition(':')
    if not separator or not host or not _is_ascii_number(port):
        raise TokenFormatError("Auth token does not start with host:port")

    query_string, separator, signature = query.rpartition('&X-Amz-Signature=')
    if not separator or not signature:
        raise TokenFormatError("Auth token carries no signature")

    params = []
    for pair in query_string.split('&'):
        key, separator, value = pair.partition('=')
        if not separator:
            raise TokenFormatError(f"Malformed query parameter {pair!r}")
        params.append((key, value))

    names = [key for key, _ in params]
    missing = [name for name in _REQUIRED_PARAMS if name not in names]
    if missing:
        raise TokenFormatError(f"Auth token is missing {', '.join(missing)}")
    if len(set(names)) != len(names):
        raise TokenFormatError("Auth token repeats a query parameter")

    parsed = ParsedAuthToken(
        host=host,
        port=int(port),
        query_string=query_string,
        params=tuple(params),
        signature=signature,
    )
    if parsed.param_map['X-Amz-Algorithm'] != ALGORITHM:
        raise TokenFormatError(f"Unsupported algorithm {parsed.param_map['X-Amz-Algorithm']!r}")
    if not _is_ascii_number(parsed.param_map['X-Amz-Expires']):
        raise TokenFormatError("X-Amz-Expires is not a number of seconds")
    if len(parsed._credential) != 5 or parsed._credential[-1] != TERMINATOR:
        raise TokenFormatError("X-Amz-Credential is not a valid credential scope")
    parse_amz_date(parsed.param_map['X-Amz-Date'])
    return parsed


def verify_auth_token(token: str, secret_key: str, at: datetime.datetime) -> bool:
    """Check an auth token the way the database server does.

    The signature is recomputed from the token's own parameters and the
    secret key, and the token must be inside its validity window at ``at``.

    :param token: str, auth token.
    :param secret_key: str, secret access key the token should be signed with.
    :param at: datetime, instant of the check.
    :raise TokenFormatError: if the token is malformed.
    :raise ConfigurationError: if ``at`` is a naive datetime.
    :return: bool, True if the token would be accepted.
    """
    parsed = parse_auth_token(token)
    if not parsed.is_valid_at(at):
        return False

    scope = parsed.credential_scope
    if scope.datestamp != format_datestamp(parsed.issued_at):
        return False

    secret = SecretKey(secret_key)
    try:
        context = SigningContext(
            database_user=parsed.database_user,
            access_key_id=parsed.access_key_id,
            secret_access_key=secret,
            host=parsed.host,
            port=parsed.port,
            request_timestamp=parsed.issued_at,
            region=scope.region,
            service=scope.service,
            expiry_seconds=parsed.expires_in,
            session_token=parsed.session_token,
        )
        if build_canonical_request(context).query_string != parsed.query_string:
            return False
        expected = sign(context)
    except RdsIamAuthError:
        return False
    finally:
        secret.wipe()
    return hmac.compare_digest(expected.signature, parsed.signature)
