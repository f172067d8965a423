import argparse
import asyncio
import getpass
import logging
import re
import sys
from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta
from pathlib import Path

from clickcheck import __version__
from clickcheck.core import ClickcheckSettings, ReportConfig, ReportPipeline
from clickcheck.core.logging import setup_logging
from clickcheck.domain import ClusterUnreachable, ConfigValidationError, RecordKind
from clickcheck.input import ClickHouseNodeFetcher, JsonDumpFetcher, NodeFetcher
from clickcheck.output import ConsoleReportOutput, OutputFormat, ReportOutput, SqsReportOutput

logger = logging.getLogger(__name__)

_DURATION_UNITS: dict[str, timedelta] = {
    "ms": timedelta(milliseconds=1),
    "msec": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "sec": timedelta(seconds=1),
    "second": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "minute": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "hr": timedelta(hours=1),
    "hour": timedelta(hours=1),
    "d": timedelta(days=1),
    "day": timedelta(days=1),
    "w": timedelta(weeks=1),
    "week": timedelta(weeks=1),
}

_BYTE_UNITS: dict[str, int] = {
    "": 1,
    "b": 1,
    "kb": 1000,
    "mb": 1000**2,
    "gb": 1000**3,
    "tb": 1000**4,
    "kib": 1024,
    "mib": 1024**2,
    "gib": 1024**3,
    "tib": 1024**4,
}

DURATION_TOKEN = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]+)")
BYTE_SIZE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*$", re.IGNORECASE)


# ---------------- Argument parsing ----------------


def parse_duration(text: str) -> timedelta:
    """Parse human-readable durations like '1h', '100ms' or '15days 2min 2s'."""
    compact = text.strip().lower()
    total = timedelta(0)
    position = 0
    for match in DURATION_TOKEN.finditer(compact):
        if compact[position : match.start()].strip():
            break
        unit = match.group(2)
        if unit not in _DURATION_UNITS and unit.endswith("s"):
            unit = unit[:-1]
        if unit not in _DURATION_UNITS:
            raise argparse.ArgumentTypeError(f"unknown duration unit in {text!r}")
        total += float(match.group(1)) * _DURATION_UNITS[unit]
        position = match.end()

    if position == 0 or compact[position:].strip():
        raise argparse.ArgumentTypeError(f"invalid duration: {text!r}")
    return total


def parse_bytes(text: str) -> int:
    """Parse sizes like '512', '10MB' or '1GiB' into bytes."""
    match = BYTE_SIZE.match(text)
    if not match or match.group(2).lower() not in _BYTE_UNITS:
        raise argparse.ArgumentTypeError(f"invalid size: {text!r}")
    return int(float(match.group(1)) * _BYTE_UNITS[match.group(2).lower()])


def parse_datetime(text: str) -> datetime:
    """Parse an RFC 3339 timestamp or a YYYY-MM-DD date (midnight UTC)."""
    try:
        return datetime.combine(date.fromisoformat(text), time.min, tzinfo=UTC)
    except ValueError:
        pass
    try:
        value = datetime.fromisoformat(text)
    except ValueError:
        raise argparse.ArgumentTypeError(
            "invalid datetime, use RFC3339 (e.g. 2024-05-01T10:30:00Z) or YYYY-MM-DD"
        ) from None
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def parse_dump(text: str) -> tuple[str, Path]:
    node, sep, path = text.partition("=")
    if not sep or not node or not path:
        raise argparse.ArgumentTypeError(f"expected NODE=PATH, got {text!r}")
    return node, Path(path)


def parse_metric(text: str) -> str:
    return text.strip().lower().replace("-", "_")


def _common_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)

    conn = common.add_argument_group("connection")
    conn.add_argument("-U", "--url", dest="urls", action="append", default=[],
                      help="ClickHouse node URL (repeatable, default: $CLICKCHECK_URLS)")
    conn.add_argument("-u", "--user", help="ClickHouse user")
    conn.add_argument("-p", "--password", help="ClickHouse password")
    conn.add_argument("-i", "--interactive-password", action="store_true",
                      help="Prompt for the password")
    conn.add_argument("--accept-invalid-certificate", action="store_true", default=None,
                      help="Skip TLS certificate verification")
    conn.add_argument("--timeout", type=float, help="Deadline in seconds for the whole fan-out")
    conn.add_argument("--dump", dest="dumps", action="append", type=parse_dump, default=[],
                      metavar="NODE=PATH", help="Read a node's rows from a JSONEachRow export")

    out = common.add_argument_group("output")
    out.add_argument("--out", type=OutputFormat, choices=list(OutputFormat),
                     default=OutputFormat.TEXT)
    out.add_argument("--show-nodes", action="store_true", help="Print per-node breakdown")
    out.add_argument("--sqs-queue-url", help="Also publish the report to this SQS queue")
    out.add_argument("--sqs-region", default="us-east-1")
    out.add_argument("--log-level", help="Logging level (default: $CLICKCHECK_LOG_LEVEL)")
    return common


def _add_window(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--from", dest="from_time", type=parse_datetime,
                        help="Lower bound for event time (inclusive); requires --to")
    parser.add_argument("--to", dest="to_time", type=parse_datetime,
                        help="Upper bound for event time (exclusive)")
    parser.add_argument("--last", type=parse_duration,
                        help="Only the last period, e.g. '1h' or '15days 2min'")


def _add_query_filters(parser: argparse.ArgumentParser) -> None:
    _add_window(parser)
    parser.add_argument("--query-user", dest="users", action="append", default=[])
    parser.add_argument("--database", dest="databases", action="append", default=[])
    parser.add_argument("--table", dest="tables", action="append", default=[])
    parser.add_argument("--min-query-duration", dest="min_duration", type=parse_duration)
    parser.add_argument("--min-read-rows", dest="min_rows", type=int)
    parser.add_argument("--min-read-data", dest="min_bytes", type=parse_bytes)
    parser.add_argument("--min-count", type=int, help="Minimum executions across the cluster")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clickcheck",
        description="Aggregate ClickHouse query_log and system.errors across cluster nodes.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    common = _common_parser()
    commands = parser.add_subparsers(dest="command", required=True)

    queries = commands.add_parser("queries", parents=[common],
                                  help="Top queries grouped by normalized_query_hash")
    _add_query_filters(queries)
    queries.add_argument("--sort-by", dest="sort_metric", type=parse_metric,
                         default="total_impact")
    queries.add_argument("--limit", type=int, default=5)

    errors = commands.add_parser("errors", parents=[common], help="Top errors by code")
    _add_window(errors)
    errors.add_argument("--min-count", type=int, help="Minimum occurrences across all nodes")
    errors.add_argument("--code", dest="error_codes", action="append", type=int, default=[])
    errors.add_argument("--sort-by", dest="sort_metric", type=parse_metric,
                        default="error_count")
    errors.add_argument("--limit", type=int, default=5)

    total = commands.add_parser("total", parents=[common],
                                help="Cluster-wide totals over the filter window")
    _add_query_filters(total)

    inspect = commands.add_parser("inspect", parents=[common],
                                  help="Per-node breakdown of one query fingerprint")
    inspect.add_argument("fingerprint", help="normalized_query_hash, e.g. 0x1f2e3d")
    _add_query_filters(inspect)

    return parser


# ---------------- Wiring ----------------


def build_config(args: argparse.Namespace) -> ReportConfig:
    kind = RecordKind.ERROR if args.command == "errors" else RecordKind.QUERY
    return ReportConfig(
        kind=kind,
        from_time=args.from_time,
        to_time=args.to_time,
        last=args.last,
        min_duration=getattr(args, "min_duration", None),
        min_rows=getattr(args, "min_rows", None),
        min_bytes=getattr(args, "min_bytes", None),
        min_count=args.min_count,
        users=tuple(getattr(args, "users", ())),
        databases=tuple(getattr(args, "databases", ())),
        tables=tuple(getattr(args, "tables", ())),
        error_codes=tuple(getattr(args, "error_codes", ())),
        sort_metric=getattr(args, "sort_metric", None),
        limit=getattr(args, "limit", 5),
        fingerprint=getattr(args, "fingerprint", None),
    )


def resolve_settings(args: argparse.Namespace, settings: ClickcheckSettings) -> ClickcheckSettings:
    """Apply CLI overrides on top of environment settings."""
    overrides: dict[str, object] = {}
    if args.urls:
        overrides["urls"] = args.urls
    if args.user:
        overrides["user"] = args.user
    if args.password is not None:
        overrides["password"] = args.password
    if args.interactive_password:
        user = args.user or settings.user
        overrides["password"] = getpass.getpass(f"ClickHouse {user} password: ")
    if args.accept_invalid_certificate is not None:
        overrides["accept_invalid_certificate"] = args.accept_invalid_certificate
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.log_level:
        overrides["log_level"] = args.log_level
    if not overrides:
        return settings
    return settings.model_validate({**settings.model_dump(), **overrides})


def build_pipeline(args: argparse.Namespace, settings: ClickcheckSettings) -> ReportPipeline:
    fetcher: NodeFetcher
    if args.dumps:
        paths = dict(args.dumps)
        fetcher = JsonDumpFetcher(paths)
        nodes: Sequence[str] = list(paths)
    else:
        fetcher = ClickHouseNodeFetcher.from_settings(settings)
        nodes = settings.urls
    return ReportPipeline(fetcher, nodes, timeout=settings.timeout)


def build_outputs(args: argparse.Namespace) -> list[ReportOutput]:
    outputs: list[ReportOutput] = [
        ConsoleReportOutput(args.out, show_nodes=args.show_nodes or args.command == "inspect")
    ]
    if args.sqs_queue_url:
        outputs.append(SqsReportOutput(args.sqs_queue_url, region=args.sqs_region))
    return outputs


async def run(args: argparse.Namespace, settings: ClickcheckSettings) -> int:
    pipeline = build_pipeline(args, settings)
    config = build_config(args)
    logger.debug("Running %s against %d nodes", args.command, len(pipeline.nodes))

    if args.command == "total":
        report = await pipeline.total(config)
    elif args.command == "inspect":
        report = await pipeline.inspect(config)
    else:
        report = await pipeline.run(config)

    for output in build_outputs(args):
        await output.send(report)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = resolve_settings(args, ClickcheckSettings())
    setup_logging(settings.log_level)

    try:
        return asyncio.run(run(args, settings))
    except ConfigValidationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except ClusterUnreachable as exc:
        print(f"Error: {exc}", file=sys.stderr)
        for failure in exc.failures:
            print(f"  - {failure.node} ({failure.reason}): {failure.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
