from collections.abc import Sequence

from tabulate import tabulate

from clickcheck.domain import ClusterTotal, RecordKind, Report, ReportRow

MAX_COLUMN_LEN = 30
# cells are preformatted strings; hashes like "0x1f2e" must not be parsed as numbers
TABLE_FORMAT = "fancy_grid"

_SI_PREFIXES = ("", "k", "M", "G", "T", "P", "E", "Z", "Y")


def compact(text: str, max_len: int = MAX_COLUMN_LEN) -> str:
    """Collapse whitespace and truncate with an ellipsis."""
    text = " ".join(text.split())
    if len(text) > max_len:
        return text[:max_len] + "…"
    return text


def format_si(value: int) -> str:
    """Format a magnitude with a decimal SI prefix, e.g. 1530000 -> '1.53 M'."""
    magnitude = float(value)
    for prefix in _SI_PREFIXES:
        if abs(magnitude) < 1000 or prefix == _SI_PREFIXES[-1]:
            if not prefix:
                return str(value)
            return f"{magnitude:.2f} {prefix}"
        magnitude /= 1000
    return str(value)


def _query_rows(rows: Sequence[ReportRow]) -> str:
    headers = ("#", "Hash", "Query", "Nodes", "Total Impact", "IO Impact", "Network Impact",
               "CPU Impact", "Memory Impact", "Time Impact")
    data = [
        (
            str(row.rank),
            row.fingerprint,
            compact(row.sample),
            str(row.totals.node_count),
            format_si(row.scores.get("total_impact", 0)),
            format_si(row.scores.get("io_impact", 0)),
            format_si(row.scores.get("network_impact", 0)),
            format_si(row.scores.get("cpu_impact", 0)),
            format_si(row.scores.get("memory_impact", 0)),
            format_si(row.scores.get("time_impact", 0)),
        )
        for row in rows
    ]
    return tabulate(data, headers=headers, tablefmt=TABLE_FORMAT, disable_numparse=True)


def _error_rows(rows: Sequence[ReportRow]) -> str:
    headers = ("#", "Code", "Name", "Count", "Nodes", "Last Seen", "Message")
    data = [
        (
            str(row.rank),
            row.fingerprint,
            row.name or "-",
            str(row.totals.error_count),
            str(row.totals.node_count),
            row.totals.last_seen.isoformat() if row.totals.last_seen else "-",
            compact(row.sample),
        )
        for row in rows
    ]
    return tabulate(data, headers=headers, tablefmt=TABLE_FORMAT, disable_numparse=True)


def _node_breakdown(row: ReportRow) -> str:
    headers = ("Node", "Rows", "Executions", "Duration (ms)", "CPU (us)", "Read Rows",
               "Read Bytes", "Errors", "Last Seen")
    data = [
        (
            b.node,
            str(b.totals.count),
            str(b.totals.executions),
            str(b.totals.duration_ms),
            str(b.totals.cpu_time_us),
            str(b.totals.read_rows),
            format_si(b.totals.read_bytes),
            str(b.totals.error_count),
            b.totals.last_seen.isoformat() if b.totals.last_seen else "-",
        )
        for b in row.per_node
    ]
    return tabulate(data, headers=headers, tablefmt=TABLE_FORMAT, disable_numparse=True)


def _coverage(report: Report | ClusterTotal) -> list[str]:
    if not report.degraded:
        return []
    lines = [f"WARNING: {len(report.failures)} of {len(report.nodes)} nodes failed, results are partial:"]
    lines.extend(f"  - {f.node} ({f.reason}): {f.message}" for f in report.failures)
    return lines


def render_report(report: Report, show_nodes: bool = False) -> str:
    if not report.rows:
        body = "No matching records"
    elif report.kind is RecordKind.ERROR:
        body = _error_rows(report.rows)
    else:
        body = _query_rows(report.rows)

    parts = [body]
    if show_nodes:
        for row in report.rows:
            parts.append(f"\n{row.fingerprint} per node:")
            parts.append(_node_breakdown(row))
    parts.extend(_coverage(report))
    return "\n".join(parts)


def render_total(total: ClusterTotal) -> str:
    headers = ("Groups", "Rows", "Executions", "Total Impact", "IO Impact", "Network Impact",
               "CPU Impact", "Memory Impact", "Time Impact")
    data = [
        (
            str(total.group_count),
            str(total.totals.count),
            str(total.totals.executions),
            *(
                format_si(total.scores.get(metric, 0))
                for metric in ("total_impact", "io_impact", "network_impact", "cpu_impact",
                               "memory_impact", "time_impact")
            ),
        )
    ]
    rendered = tabulate(data, headers=headers, tablefmt=TABLE_FORMAT, disable_numparse=True)
    return "\n".join([rendered, *_coverage(total)])
