from enum import StrEnum

from clickcheck.domain import ClusterTotal, Report
from clickcheck.output.serialize import to_json, to_yaml
from clickcheck.output.text import render_report, render_total


class OutputFormat(StrEnum):
    TEXT = "text"
    JSON = "json"
    YAML = "yaml"


class ConsoleReportOutput:
    """Prints reports to stdout as a text table, JSON or YAML."""

    def __init__(self, fmt: OutputFormat | str = OutputFormat.TEXT, show_nodes: bool = False) -> None:
        self._format = OutputFormat(fmt)
        self._show_nodes = show_nodes

    @property
    def name(self) -> str:
        return "console"

    @property
    def output_format(self) -> OutputFormat:
        return self._format

    async def send(self, report: Report | ClusterTotal) -> None:
        print(self.render(report))

    def render(self, report: Report | ClusterTotal) -> str:
        if self._format is OutputFormat.JSON:
            return to_json(report)
        if self._format is OutputFormat.YAML:
            return to_yaml(report).rstrip("\n")
        if isinstance(report, ClusterTotal):
            return render_total(report)
        return render_report(report, show_nodes=self._show_nodes)
