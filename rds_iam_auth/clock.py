"""Module containing the clock that anchors an auth token to a single instant."""
import datetime

from .exceptions import ConfigurationError, TokenFormatError

AMZ_DATE_FORMAT = '%Y%m%dT%H%M%SZ'
DATESTAMP_FORMAT = '%Y%m%d'


def to_utc(instant: datetime.datetime) -> datetime.datetime:
    """Normalize an instant to UTC with whole-second precision.

    :param instant: datetime, timezone-aware instant.
    :raise ConfigurationError: if the instant carries no timezone.
    :return: datetime, the same instant in UTC.
    """
    if not isinstance(instant, datetime.datetime):
        raise ConfigurationError(f"Expected a datetime, got {type(instant).__name__}")
    if instant.tzinfo is None or instant.utcoffset() is None:
        raise ConfigurationError("Request timestamp must be timezone-aware")
    return instant.astimezone(datetime.timezone.utc).replace(microsecond=0)


def format_amz_date(instant: datetime.datetime) -> str:
    return to_utc(instant).strftime(AMZ_DATE_FORMAT)


def format_datestamp(instant: datetime.datetime) -> str:
    return to_utc(instant).strftime(DATESTAMP_FORMAT)


def parse_amz_date(value: str) -> datetime.datetime:
    """Parse a ``YYYYMMDDTHHMMSSZ`` timestamp.

    :param value: str, timestamp as it appears in ``X-Amz-Date``.
    :raise TokenFormatError: if the value is not in the expected format.
    :return: datetime, aware UTC instant.
    """
    try:
        parsed = datetime.datetime.strptime(value, AMZ_DATE_FORMAT)
    except (TypeError, ValueError) as e:
        raise TokenFormatError(f"Invalid X-Amz-Date value {value!r}: {e}") from e
    return parsed.replace(tzinfo=datetime.timezone.utc)


class Clock:
    """Source of the current instant.

    Subclasses must override ``now`` to return an aware UTC datetime.
    """

    def now(self) -> datetime.datetime:
        raise NotImplementedError


class SystemClock(Clock):
    """Reads the wall clock in UTC."""

    def now(self) -> datetime.datetime:
        return to_utc(datetime.datetime.now(datetime.timezone.utc))


class FixedClock(Clock):
    """Always returns the instant it was created with."""

    def __init__(self, instant: datetime.datetime) -> None:
        self.instant = to_utc(instant)

    @classmethod
    def from_amz_date(cls, value: str) -> 'FixedClock':
        return cls(parse_amz_date(value))

    def now(self) -> datetime.datetime:
        return self.instant
