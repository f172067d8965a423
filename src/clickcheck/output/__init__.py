from clickcheck.output.base import ReportOutput
from clickcheck.output.console import ConsoleReportOutput, OutputFormat
from clickcheck.output.serialize import report_to_dict, to_json, to_yaml
from clickcheck.output.sqs import SqsReportOutput

__all__ = [
    "ReportOutput",
    "ConsoleReportOutput",
    "OutputFormat",
    "SqsReportOutput",
    "report_to_dict",
    "to_json",
    "to_yaml",
]
