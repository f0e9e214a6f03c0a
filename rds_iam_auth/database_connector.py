"""Module containing the DatabaseConnector for RDS IAM authentication."""
import logging
import ssl
from typing import Callable, Optional

import pymysql
from pymysql.constants import CLIENT, ER

from .config import ConnectionSettings
from .exceptions import (
    AuthenticationError,
    DatabaseConnectionError,
    TransportError,
)
from .request_signer import AuthToken, RequestSigner

logger = logging.getLogger(__name__)


class TlsRequiredConnection(pymysql.connections.Connection):
    """PyMySQL connection that never authenticates over a plain socket.

    The auth token is a bearer credential. The server asks for it through the
    ``mysql_clear_password`` plugin, which PyMySQL answers with the unmodified
    password, so the socket has to be wrapped in TLS before the handshake
    response goes out.
    """

    def _request_authentication(self) -> None:
        if not self.ssl:
            raise TransportError("TLS is not configured; refusing to send an auth token")
        if not self.server_capabilities & CLIENT.SSL:
            raise TransportError(
                f"Server {self.host} does not offer TLS; refusing to send an auth token in clear text"
            )
        super()._request_authentication()


class DatabaseConnector:
    """Handles connecting to a MySQL database with a freshly signed auth token."""

    def __init__(
        self,
        signer: RequestSigner,
        settings: Optional[ConnectionSettings] = None,
        connection_factory: Callable[..., pymysql.connections.Connection] = TlsRequiredConnection,
    ) -> None:
        self.signer = signer
        self.settings = settings or ConnectionSettings(region=signer.region)
        self.connection_factory = connection_factory

    def generate_auth_token(self, host: str, user: str) -> AuthToken:
        return self.signer.generate_auth_token(
            host,
            self.settings.port,
            user,
            expiry_seconds=self.settings.expiry_seconds,
        )

    def connect(self, host: str, user: str) -> pymysql.connections.Connection:
        """Open a TLS connection to ``host`` authenticated as ``user``.

        Every attempt signs a new token. A rejected token is retried at most
        once, because the usual cause is a token that expired before use.

        :param host: str, database host name.
        :param user: str, database user with IAM authentication enabled.
        :raise AuthenticationError: if the server rejects the token.
        :raise TransportError: if TLS cannot be established.
        :raise DatabaseConnectionError: if the server cannot be reached.
        :return: pymysql.connections.Connection, open connection.
        """
        retries = self.settings.auth_retries
        while True:
            token = self.generate_auth_token(host, user)
            try:
                return self._open(host, user, token)
            except AuthenticationError:
                if retries <= 0:
                    raise
                retries -= 1
                logger.warning(
                    "Authentication as %s on %s failed; retrying with a freshly signed token",
                    user, host,
                )

    def ssl_context(self) -> ssl.SSLContext:
        """Return a TLS context that verifies both the certificate chain and the host name.

        PyMySQL only checks the host name when a CA file is given, so the
        context is built here and handed to the driver as is.
        """
        try:
            context = ssl.create_default_context(cafile=self.settings.ssl_ca)
        except OSError as e:
            raise TransportError(f"Cannot load CA bundle {self.settings.ssl_ca!r}: {e}") from e
        context.check_hostname = True
        context.verify_mode = ssl.CERT_REQUIRED
        return context

    def _open(self, host: str, user: str, token: AuthToken) -> pymysql.connections.Connection:
        try:
            connection = self.connection_factory(
                host=host,
                port=self.settings.port,
                user=user,
                password=token.value,
                database=self.settings.database,
                connect_timeout=self.settings.connect_timeout,
                ssl=self.ssl_context(),
            )
        except pymysql.err.OperationalError as e:
            code = e.args[0] if e.args else None
            if code == ER.ACCESS_DENIED_ERROR:
                raise AuthenticationError(
                    f"Database {host} rejected the auth token for {user}: {e.args[-1]}"
                ) from e
            if isinstance(getattr(e, 'original_exception', None), ssl.SSLError):
                raise TransportError(f"TLS negotiation with {host} failed: {e.original_exception}") from e
            raise DatabaseConnectionError(f"Failed to connect to {host}: {e}") from e
        except pymysql.err.MySQLError as e:
            raise DatabaseConnectionError(f"Failed to connect to {host}: {e}") from e

        logger.info("Connected to %s:%s as %s", host, self.settings.port, user)
        return connection


def query_server_version(connection: pymysql.connections.Connection) -> str:
    with connection.cursor() as cursor:
        cursor.execute("SELECT VERSION()")
        row = cursor.fetchone()
    if row is None:
        raise DatabaseConnectionError("Server returned no version")
    return row[0]
