"""Tests for SigningContext validation and secret key handling."""

from __future__ import annotations

import dataclasses
import datetime

import pytest

from conftest import make_context
from rds_iam_auth.exceptions import ConfigurationError, CredentialError, EncodingError
from rds_iam_auth.signing_context import CredentialScope, SecretKey, wipe_buffer


class TestSecretKey:
    def test_repr_hides_value(self) -> None:
        key = SecretKey("secretEXAMPLE")
        assert "secretEXAMPLE" not in repr(key)
        assert "secretEXAMPLE" not in str(key)

    def test_empty_rejected(self) -> None:
        with pytest.raises(CredentialError):
            SecretKey("")

    def test_prefixed_buffer_is_zeroed_after_use(self) -> None:
        key = SecretKey("abc")
        with key.prefixed(b"AWS4") as material:
            assert bytes(material) == b"AWS4abc"
            held = material
        assert held == bytearray()

    def test_wiped_key_cannot_be_used(self) -> None:
        key = SecretKey("abc")
        key.wipe()
        assert key.wiped
        with pytest.raises(CredentialError):
            with key.prefixed(b"AWS4"):
                pass

    def test_wipe_buffer(self) -> None:
        buffer = bytearray(b"secret")
        wipe_buffer(buffer)
        assert buffer == bytearray()


class TestCredentialScope:
    def test_str(self) -> None:
        scope = CredentialScope("20180101", "eu-west-1", "rds-db")
        assert str(scope) == "20180101/eu-west-1/rds-db/aws4_request"

    def test_credential(self) -> None:
        scope = CredentialScope("20180101", "eu-west-1", "rds-db")
        assert scope.credential("AKIAEXAMPLE") == "AKIAEXAMPLE/20180101/eu-west-1/rds-db/aws4_request"


class TestSigningContext:
    def test_derived_values(self) -> None:
        context = make_context()
        assert context.amz_date == "20180101T120000Z"
        assert context.datestamp == "20180101"
        assert context.endpoint == "mydb.abc123.eu-west-1.rds.amazonaws.com:3306"
        assert str(context.credential_scope) == "20180101/eu-west-1/rds-db/aws4_request"

    def test_immutable(self) -> None:
        context = make_context()
        with pytest.raises(dataclasses.FrozenInstanceError):
            context.port = 5432  # type: ignore[misc]

    def test_repr_hides_secret_and_session_token(self) -> None:
        context = make_context(session_token="FQoGZXIvYXdzEXAMPLE")
        text = repr(context)
        assert "secretEXAMPLE" not in text
        assert "FQoGZXIvYXdzEXAMPLE" not in text

    def test_timestamp_normalised_to_utc(self) -> None:
        plus_two = datetime.timezone(datetime.timedelta(hours=2))
        context = make_context(
            request_timestamp=datetime.datetime(2018, 1, 1, 14, 0, 0, tzinfo=plus_two)
        )
        assert context.amz_date == "20180101T120000Z"

    @pytest.mark.parametrize("field", ["database_user", "host", "region", "service"])
    def test_empty_required_field_rejected(self, field: str) -> None:
        with pytest.raises(ConfigurationError):
            make_context(**{field: ""})

    def test_empty_access_key_is_credential_error(self) -> None:
        with pytest.raises(CredentialError):
            make_context(access_key_id="")

    def test_plain_string_secret_rejected(self) -> None:
        with pytest.raises(CredentialError):
            make_context(secret_access_key="secretEXAMPLE")

    @pytest.mark.parametrize("port", [0, 65536, -1, "3306", True])
    def test_invalid_port_rejected(self, port) -> None:
        with pytest.raises(ConfigurationError):
            make_context(port=port)

    @pytest.mark.parametrize("expiry", [0, 901, 3600])
    def test_expiry_outside_server_window_rejected(self, expiry: int) -> None:
        with pytest.raises(ConfigurationError):
            make_context(expiry_seconds=expiry)

    def test_shorter_expiry_allowed(self) -> None:
        assert make_context(expiry_seconds=60).expiry_seconds == 60

    def test_naive_timestamp_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            make_context(request_timestamp=datetime.datetime(2018, 1, 1, 12, 0, 0))

    @pytest.mark.parametrize(
        "host",
        ["mydb.example.com/evil", "mydb example.com", "mydb.example.com?x=1", "-mydb.example.com", "db:3306"],
    )
    def test_host_needing_escaping_rejected(self, host: str) -> None:
        with pytest.raises(EncodingError):
            make_context(host=host)

    def test_ipv4_host_accepted(self) -> None:
        assert make_context(host="10.0.0.12").endpoint == "10.0.0.12:3306"

    @pytest.mark.parametrize("user", ["db\nuser", "db\x00user", "db\ud800user"])
    def test_unencodable_user_rejected(self, user: str) -> None:
        with pytest.raises(EncodingError):
            make_context(database_user=user)

    def test_access_key_with_separator_rejected(self) -> None:
        with pytest.raises(EncodingError):
            make_context(access_key_id="AKIA/EXAMPLE")

    def test_region_with_uppercase_rejected(self) -> None:
        with pytest.raises(EncodingError):
            make_context(region="EU-WEST-1")
