from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from clickcheck.domain import SUMMED_FIELDS, ConfigValidationError, RecordKind

# Sort keys available besides the impact metrics.
RAW_SORT_FIELDS: tuple[str, ...] = ("count", "node_count", *SUMMED_FIELDS)

DEFAULT_SORT_METRIC = {
    RecordKind.QUERY: "total_impact",
    RecordKind.ERROR: "error_count",
}


def canonical_fingerprint(text: str, kind: RecordKind) -> str:
    """Form produced by the fetchers: "0x..." query hashes, decimal error codes.

    Unparseable input is returned stripped and lowercased; validation rejects it.
    """
    text = text.strip().lower()
    try:
        if kind is RecordKind.ERROR:
            return str(int(text, 10))
        return f"{int(text, 16):#x}"
    except ValueError:
        return text


class ClickcheckSettings(BaseSettings):
    """Connection settings, read from CLICKCHECK_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLICKCHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    urls: list[str] = []
    user: str = "default"
    password: SecretStr = SecretStr("")
    timeout: float = 30.0
    accept_invalid_certificate: bool = False
    log_level: str = "WARNING"


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open interval [start, end); either bound may be open."""

    start: datetime | None = None
    end: datetime | None = None

    def overlaps(self, first_seen: datetime | None, last_seen: datetime | None) -> bool:
        if self.start is not None and (last_seen is None or last_seen < self.start):
            return False
        if self.end is not None and (first_seen is None or first_seen >= self.end):
            return False
        return True

    @property
    def is_open(self) -> bool:
        return self.start is None and self.end is None


@dataclass(frozen=True, slots=True)
class ReportConfig:
    """Filter, sort and limit parameters of one report run."""

    kind: RecordKind = RecordKind.QUERY
    from_time: datetime | None = None
    to_time: datetime | None = None
    last: timedelta | None = None
    min_duration: timedelta | None = None
    min_rows: int | None = None
    min_bytes: int | None = None
    min_count: int | None = None
    users: tuple[str, ...] = ()
    databases: tuple[str, ...] = ()
    tables: tuple[str, ...] = ()
    error_codes: tuple[int, ...] = ()
    sort_metric: str | None = None
    limit: int = 5
    fingerprint: str | None = None

    def __post_init__(self) -> None:
        if self.fingerprint is not None:
            object.__setattr__(
                self, "fingerprint", canonical_fingerprint(self.fingerprint, self.kind)
            )

    @property
    def effective_sort_metric(self) -> str:
        return self.sort_metric or DEFAULT_SORT_METRIC[self.kind]

    def validate(self, metric_names: Iterable[str] = ()) -> None:
        if self.last is not None and (self.from_time is not None or self.to_time is not None):
            raise ConfigValidationError("--last cannot be combined with --from/--to")

        if self.from_time is not None and self.to_time is None:
            raise ConfigValidationError("--from requires --to")

        if self.from_time is not None and self.to_time is not None:
            if self.from_time.tzinfo is None or self.to_time.tzinfo is None:
                raise ConfigValidationError("--from/--to must be timezone-aware")
            if self.from_time >= self.to_time:
                raise ConfigValidationError("--from must be earlier than --to")

        if self.last is not None and self.last <= timedelta(0):
            raise ConfigValidationError("--last must be a positive duration")

        if self.limit < 1:
            raise ConfigValidationError("limit must be at least 1")

        if self.min_duration is not None and self.min_duration < timedelta(0):
            raise ConfigValidationError("min_duration must not be negative")
        for name in ("min_rows", "min_bytes", "min_count"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigValidationError(f"{name} must not be negative")

        if self.error_codes and self.kind is not RecordKind.ERROR:
            raise ConfigValidationError("error codes only apply to error reports")

        if self.kind is RecordKind.ERROR and (self.users or self.databases or self.tables):
            raise ConfigValidationError("user/database/table filters only apply to query reports")

        if self.fingerprint is not None:
            self._validate_fingerprint(self.fingerprint)

        known = (*metric_names, *RAW_SORT_FIELDS)
        if self.effective_sort_metric not in known:
            raise ConfigValidationError(
                f"unknown sort metric {self.effective_sort_metric!r}; "
                f"expected one of: {', '.join(known)}"
            )

    def _validate_fingerprint(self, fingerprint: str) -> None:
        try:
            if self.kind is RecordKind.ERROR:
                int(fingerprint, 10)
            else:
                int(fingerprint, 16)
        except ValueError:
            expected = "an error code" if self.kind is RecordKind.ERROR else "a hex query hash"
            raise ConfigValidationError(
                f"invalid fingerprint {fingerprint!r}: expected {expected}"
            ) from None

    def time_window(self, now: datetime) -> TimeWindow:
        """Resolve the window to absolute bounds using one clock reading."""
        if self.last is not None:
            return TimeWindow(start=now - self.last, end=None)
        return TimeWindow(start=self.from_time, end=self.to_time)


@dataclass(frozen=True, slots=True)
class FetchParams:
    """Filters pushed down to every node of one run."""

    kind: RecordKind
    window: TimeWindow
    users: tuple[str, ...] = ()
    databases: tuple[str, ...] = ()
    tables: tuple[str, ...] = ()
    error_codes: tuple[int, ...] = ()
    fingerprint: str | None = None

    @classmethod
    def from_config(cls, config: ReportConfig, now: datetime) -> "FetchParams":
        return cls(
            kind=config.kind,
            window=config.time_window(now),
            users=config.users,
            databases=config.databases,
            tables=config.tables,
            error_codes=config.error_codes,
            fingerprint=config.fingerprint,
        )
