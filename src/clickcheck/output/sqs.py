from aiobotocore.session import get_session

from clickcheck.domain import ClusterTotal, Report
from clickcheck.output.serialize import to_json


class SqsReportOutput:
    """Publishes the JSON form of each report to an SQS queue."""

    def __init__(self, queue_url: str, region: str = "us-east-1") -> None:
        self._queue_url = queue_url
        self._region = region
        self._session = get_session()

    @property
    def name(self) -> str:
        return "sqs"

    async def send(self, report: Report | ClusterTotal) -> None:
        async with self._session.create_client("sqs", region_name=self._region) as client:
            await client.send_message(
                QueueUrl=self._queue_url,
                MessageBody=to_json(report),
                MessageAttributes={
                    "kind": {"DataType": "String", "StringValue": str(report.kind)},
                    "degraded": {"DataType": "String", "StringValue": str(report.degraded).lower()},
                },
            )
