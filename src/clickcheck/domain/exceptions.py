from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clickcheck.domain.models import NodeFailure


class ClickcheckError(Exception):
    pass


class ConfigValidationError(ClickcheckError):
    pass


class NodeError(ClickcheckError):
    def __init__(self, node: str, message: str) -> None:
        super().__init__(f"{node}: {message}")
        self.node = node
        self.message = message


class NodeUnreachable(NodeError):
    pass


class NodeQueryError(NodeError):
    pass


class ClusterUnreachable(ClickcheckError):
    def __init__(self, failures: Sequence["NodeFailure"]) -> None:
        nodes = ", ".join(f.node for f in failures) or "no nodes"
        super().__init__(f"All nodes failed: {nodes}")
        self.failures = tuple(failures)


class MergeInvariantViolation(ClickcheckError):
    pass
