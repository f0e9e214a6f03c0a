"""Module containing the RequestSigner for RDS IAM database authentication.

An auth token is a presigned ``connect`` request in Signature Version 4
form. Nothing is ever sent with it: the token is handed to the database
driver as the password, and the server recomputes the signature itself.
"""
import hashlib
import hmac
import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union
from urllib.parse import quote

from .clock import Clock, SystemClock
from .exceptions import EncodingError, RdsIamAuthError, SigningError
from .signing_context import (
    ALGORITHM,
    DEFAULT_REGION,
    MAX_EXPIRY_SECONDS,
    SERVICE,
    CredentialScope,
    SecretKey,
    SigningContext,
    wipe_buffer,
)

logger = logging.getLogger(__name__)

HTTP_METHOD = 'GET'
CANONICAL_URI = '/'
SIGNED_HEADERS = 'host'
EMPTY_PAYLOAD_HASH = hashlib.sha256(b'').hexdigest()

_SECURITY_TOKEN_PARAM = re.compile(r'(X-Amz-Security-Token=)[^&\n]*')

Key = Union[bytes, bytearray]


def escape(value: str) -> str:
    """Percent-encode a query string value, leaving only unreserved characters.

    :param value: str, raw parameter value.
    :raise EncodingError: if the value cannot be encoded as UTF-8.
    :return: str, encoded value.
    """
    try:
        return quote(value, safe='')
    except UnicodeEncodeError as e:
        raise EncodingError(f"Cannot percent-encode value: {e.reason}") from e


def _sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def _hmac_sha256(key: Key, message: str) -> bytes:
    return hmac.new(key, message.encode('utf-8'), hashlib.sha256).digest()


def _redact(text: str) -> str:
    return _SECURITY_TOKEN_PARAM.sub(r'\1****', text)


@dataclass(frozen=True)
class CanonicalRequest:
    query_string: str
    canonical_headers: str
    request_without_signature: str
    text: str

    @property
    def digest(self) -> str:
        return _sha256_hex(self.text)


@dataclass(frozen=True)
class StringToSign:
    canonical_request: CanonicalRequest
    text: str


@dataclass(frozen=True)
class AuthToken:
    """Signed credential presented to the database in place of a password."""

    request_without_signature: str
    signature: str

    @property
    def value(self) -> str:
        return f"{self.request_without_signature}&X-Amz-Signature={self.signature}"

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        endpoint = self.request_without_signature.split('/?', 1)[0]
        return f"AuthToken(endpoint={endpoint!r}, signature='****')"


def canonical_query_params(context: SigningContext) -> List[Tuple[str, str]]:
    """Return the query parameters of the connect request in canonical order."""
    params = [
        ('Action', 'connect'),
        ('DBUser', escape(context.database_user)),
        ('X-Amz-Algorithm', ALGORITHM),
        ('X-Amz-Credential', escape(context.credential_scope.credential(context.access_key_id))),
        ('X-Amz-Date', context.amz_date),
        ('X-Amz-Expires', str(context.expiry_seconds)),
    ]
    if context.session_token is not None:
        params.append(('X-Amz-Security-Token', escape(context.session_token)))
    params.append(('X-Amz-SignedHeaders', SIGNED_HEADERS))
    return params


def build_canonical_request(context: SigningContext) -> CanonicalRequest:
    query_string = '&'.join(f"{key}={value}" for key, value in canonical_query_params(context))
    canonical_headers = f"host:{context.endpoint}\n"
    text = '\n'.join((
        HTTP_METHOD,
        CANONICAL_URI,
        query_string,
        canonical_headers,
        SIGNED_HEADERS,
        EMPTY_PAYLOAD_HASH,
    ))
    return CanonicalRequest(
        query_string=query_string,
        canonical_headers=canonical_headers,
        request_without_signature=f"{context.endpoint}/?{query_string}",
        text=text,
    )


def build_string_to_sign(canonical_request: CanonicalRequest, amz_date: str,
                         scope: CredentialScope) -> StringToSign:
    text = '\n'.join((ALGORITHM, amz_date, str(scope), canonical_request.digest))
    return StringToSign(canonical_request=canonical_request, text=text)


def derivation_chain(k_secret: Key, datestamp: str, region: str,
                     service: str) -> Tuple[bytes, bytes, bytes, bytes]:
    """Run the four HMAC-SHA256 stages that turn a secret into a signing key.

    Every stage is keyed with the raw digest of the previous one; hex
    encoding an intermediate value yields a key the server will not derive.

    :param k_secret: bytes, ``b'AWS4'`` followed by the secret access key.
    :return: Tuple[bytes, bytes, bytes, bytes], kDate, kRegion, kService and
        the signing key.
    """
    k_date = _hmac_sha256(k_secret, datestamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    k_signing = _hmac_sha256(k_service, 'aws4_request')
    return k_date, k_region, k_service, k_signing


@contextmanager
def signing_key(secret_key: SecretKey, scope: CredentialScope) -> Iterator[bytearray]:
    """Derive the signing key for a scope; the key is zeroed when the block exits."""
    with secret_key.prefixed(b'AWS4') as k_secret:
        key = bytearray(derivation_chain(k_secret, scope.datestamp, scope.region, scope.service)[-1])
    try:
        yield key
    finally:
        wipe_buffer(key)


def calculate_signature(string_to_sign: StringToSign, key: Key) -> str:
    return hmac.new(key, string_to_sign.text.encode('utf-8'), hashlib.sha256).hexdigest()


def assemble_auth_token(canonical_request: CanonicalRequest, signature: str) -> AuthToken:
    return AuthToken(
        request_without_signature=canonical_request.request_without_signature,
        signature=signature,
    )


def sign(context: SigningContext) -> AuthToken:
    """Produce the auth token for a signing context.

    :param context: SigningContext, inputs with the timestamp already captured.
    :raise EncodingError: if a parameter cannot be placed in the canonical request.
    :return: AuthToken, the signed credential.
    """
    scope = context.credential_scope
    canonical_request = build_canonical_request(context)
    logger.debug("Canonical request:\n%s", _redact(canonical_request.text))

    string_to_sign = build_string_to_sign(canonical_request, context.amz_date, scope)
    logger.debug("String to sign:\n%s", string_to_sign.text)

    with signing_key(context.secret_access_key, scope) as key:
        signature = calculate_signature(string_to_sign, key)

    return assemble_auth_token(canonical_request, signature)


class RequestSigner:
    """Handles RDS IAM auth token signing using Signature Version 4.

    Use as a context manager to wipe the secret key once the signer is no
    longer needed::

        with RequestSigner(access_key, secret_key, region='eu-west-1') as signer:
            token = signer.generate_auth_token(host, 3306, 'dbiamuser')
    """

    def __init__(
        self,
        access_key: str,
        secret_key: str,
        region: str = DEFAULT_REGION,
        session_token: Optional[str] = None,
        clock: Optional[Clock] = None,
        service: str = SERVICE,
    ) -> None:
        """Initialize the request signer.

        :param access_key: str, AWS access key id.
        :param secret_key: str, AWS secret access key.
        :param region: str, region of the database instance.
        :param session_token: Optional[str], session token of temporary credentials.
        :param clock: Optional[Clock], source of the request timestamp.
        :param service: str, signing namespace.
        """
        self.access_key = access_key
        self.region = region
        self.service = service
        self.session_token = session_token
        self.clock = clock or SystemClock()
        self._secret_key = SecretKey(secret_key)

    def __enter__(self) -> 'RequestSigner':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RequestSigner(access_key={self.access_key!r}, region={self.region!r})"

    def close(self) -> None:
        self._secret_key.wipe()

    def build_context(self, host: str, port: int, user: str,
                      expiry_seconds: int = MAX_EXPIRY_SECONDS) -> SigningContext:
        """Capture the current instant and bundle it with the connection parameters."""
        return SigningContext(
            database_user=user,
            access_key_id=self.access_key,
            secret_access_key=self._secret_key,
            host=host,
            port=port,
            request_timestamp=self.clock.now(),
            region=self.region,
            service=self.service,
            expiry_seconds=expiry_seconds,
            session_token=self.session_token,
        )

    def generate_auth_token(self, host: str, port: int, user: str,
                            expiry_seconds: int = MAX_EXPIRY_SECONDS) -> AuthToken:
        """Create an auth token for connecting to a database as ``user``.

        :param host: str, database host name.
        :param port: int, database port.
        :param user: str, database user with IAM authentication enabled.
        :param expiry_seconds: int, validity window, at most 900 seconds.
        :raise ConfigurationError: if a parameter is missing or out of range.
        :raise SigningError: if request signing fails.
        :return: AuthToken, signed credential.
        """
        try:
            token = sign(self.build_context(host, port, user, expiry_seconds))
        except RdsIamAuthError:
            raise
        except (TypeError, ValueError) as e:
            raise SigningError(f"Failed to sign auth token: {e}") from e
        logger.info("Generated auth token for %s on %s:%s", user, host, port)
        return token
