"""Encoding-neutral projection of reports into plain dicts and lists."""

import json
from dataclasses import asdict
from datetime import datetime
from enum import StrEnum
from typing import Any

import yaml

from clickcheck.domain import ClusterTotal, MergedTotals, NodeFailure, Report, ReportRow


def _plain(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, StrEnum):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_plain(v) for v in value]
    return value


def totals_to_dict(totals: MergedTotals) -> dict[str, Any]:
    return _plain(asdict(totals))


def failure_to_dict(failure: NodeFailure) -> dict[str, Any]:
    return {"node": failure.node, "reason": str(failure.reason), "message": failure.message}


def row_to_dict(row: ReportRow) -> dict[str, Any]:
    data: dict[str, Any] = {
        "rank": row.rank,
        "fingerprint": row.fingerprint,
        "kind": str(row.kind),
        "sample": row.sample,
    }
    if row.name is not None:
        data["name"] = row.name
    data.update(
        {
            "totals": totals_to_dict(row.totals),
            "scores": dict(row.scores),
            "nodes": list(row.nodes),
            "users": list(row.users),
            "databases": list(row.databases),
            "tables": list(row.tables),
            "per_node": [
                {"node": b.node, "totals": totals_to_dict(b.totals)} for b in row.per_node
            ],
        }
    )
    return data


def report_to_dict(report: Report | ClusterTotal) -> dict[str, Any]:
    data: dict[str, Any] = {
        "kind": str(report.kind),
        "generated_at": report.generated_at.isoformat(),
        "scoring_version": report.scoring_version,
        "nodes": list(report.nodes),
        "degraded": report.degraded,
        "failures": [failure_to_dict(f) for f in report.failures],
    }
    if isinstance(report, ClusterTotal):
        data["group_count"] = report.group_count
        data["totals"] = totals_to_dict(report.totals)
        data["scores"] = dict(report.scores)
    else:
        data["sort_metric"] = report.sort_metric
        data["rows"] = [row_to_dict(row) for row in report.rows]
    return data


def to_json(report: Report | ClusterTotal) -> str:
    return json.dumps(report_to_dict(report), indent=2)


def to_yaml(report: Report | ClusterTotal) -> str:
    return yaml.safe_dump(report_to_dict(report), sort_keys=False, allow_unicode=True)
