"""Shared fixtures for tests."""

from __future__ import annotations

import datetime

import pytest

from rds_iam_auth.clock import FixedClock
from rds_iam_auth.request_signer import RequestSigner
from rds_iam_auth.signing_context import SecretKey, SigningContext

EXAMPLE_HOST = "mydb.abc123.eu-west-1.rds.amazonaws.com"
EXAMPLE_TIMESTAMP = datetime.datetime(2018, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


def make_context(**overrides) -> SigningContext:
    fields = dict(
        database_user="dbiamuser",
        access_key_id="AKIAEXAMPLE",
        secret_access_key=SecretKey("secretEXAMPLE"),
        host=EXAMPLE_HOST,
        port=3306,
        request_timestamp=EXAMPLE_TIMESTAMP,
        region="eu-west-1",
        service="rds-db",
        expiry_seconds=900,
    )
    fields.update(overrides)
    return SigningContext(**fields)


@pytest.fixture
def example_context() -> SigningContext:
    return make_context()


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(EXAMPLE_TIMESTAMP)


@pytest.fixture
def example_signer(fixed_clock: FixedClock) -> RequestSigner:
    return RequestSigner("AKIAEXAMPLE", "secretEXAMPLE", region="eu-west-1", clock=fixed_clock)
