"""Command-line entry point: sign an auth token and connect to MySQL with it."""
import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from .config import ConnectionSettings, credentials_from_environment
from .database_connector import DatabaseConnector, query_server_version
from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    EncodingError,
    RdsIamAuthError,
    TransportError,
)
from .request_signer import RequestSigner

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_AUTHENTICATION = 3
EXIT_TRANSPORT = 4


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='rds-iam-connect',
        description="Connects to the database with the IAM credentials",
    )
    parser.add_argument('host', help="Database host name")
    parser.add_argument('user', help="Database user with IAM authentication enabled")
    parser.add_argument('access_key', nargs='?', help="AWS access key id (default: AWS_ACCESS_KEY_ID)")
    parser.add_argument('secret_key', nargs='?', help="AWS secret access key (default: AWS_SECRET_ACCESS_KEY)")
    parser.add_argument('--region', help="Region of the database instance")
    parser.add_argument('--port', type=int, help="Database port")
    parser.add_argument('--ssl-ca', help="Path to the CA bundle used to verify the server")
    parser.add_argument('--database', help="Default database to select")
    parser.add_argument('--session-token', help="Session token of temporary credentials")
    parser.add_argument(
        '--print-token',
        action='store_true',
        help="Print the auth token instead of connecting",
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help="Enable debug logging",
    )
    return parser


def _settings(args: argparse.Namespace) -> ConnectionSettings:
    settings = ConnectionSettings.from_environment()
    overrides = {
        'region': args.region,
        'port': args.port,
        'ssl_ca': args.ssl_ca,
        'database': args.database,
    }
    return dataclasses.replace(settings, **{k: v for k, v in overrides.items() if v is not None})


def run(args: argparse.Namespace) -> int:
    if args.access_key and args.secret_key:
        access_key, secret_key, session_token = args.access_key, args.secret_key, args.session_token
    elif args.access_key or args.secret_key:
        raise ConfigurationError("Pass both access_key and secret_key, or neither")
    else:
        access_key, secret_key, session_token = credentials_from_environment()
        session_token = args.session_token or session_token

    settings = _settings(args)
    with RequestSigner(access_key, secret_key, region=settings.region, session_token=session_token) as signer:
        connector = DatabaseConnector(signer, settings)
        if args.print_token:
            print(connector.generate_auth_token(args.host, args.user))
            return EXIT_OK

        connection = connector.connect(args.host, args.user)
        with connection:
            version = query_server_version(connection)

    print(f"Connected successfully to MySQL at {args.host}. Server version {version}")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        return run(args)
    except (ConfigurationError, EncodingError) as e:
        logger.error("%s", e)
        return EXIT_USAGE
    except AuthenticationError as e:
        logger.error("%s", e)
        return EXIT_AUTHENTICATION
    except TransportError as e:
        logger.error("%s", e)
        return EXIT_TRANSPORT
    except RdsIamAuthError as e:
        logger.error("%s", e)
        return EXIT_FAILURE


if __name__ == '__main__':
    sys.exit(main())
