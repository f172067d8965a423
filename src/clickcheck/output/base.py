from typing import Protocol, runtime_checkable

from clickcheck.domain import ClusterTotal, Report


@runtime_checkable
class ReportOutput(Protocol):
    """Protocol for report destinations."""

    @property
    def name(self) -> str:
        ...

    async def send(self, report: Report | ClusterTotal) -> None:
        ...
