from __future__ import annotations

import traceback
from collections.abc import Sequence
from typing import IO, Self

from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from hybridflow.model.WorkflowRequest import Node


class DiagnosticError(Exception):
    """
    Specified an error that's likely caused by wrong data from a client.
    """

    msg: str
    node: Node | None

    def __init__(self, msg: str, node: Node | None = None) -> None:
        super().__init__(msg)

        self.msg = msg
        self.node = node

    @property
    def node_id(self) -> str | None:
        return None if self.node is None else self.node.id


class CycleDetected(DiagnosticError):
    def __init__(self, remaining: Sequence[str]) -> None:
        super().__init__(
            f"Circular dependency detected in workflow between nodes {sorted(remaining)}."
        )
        self.remaining = list(remaining)


class UnknownNodeReference(DiagnosticError):
    def __init__(self, node_id: str, role: str) -> None:
        super().__init__(f"Edge {role} '{node_id}' does not reference an existing node.")


class DuplicateNodeId(DiagnosticError):
    def __init__(self, node: Node) -> None:
        super().__init__(f"Node id '{node.id}' is used more than once.", node)


class MissingInput(DiagnosticError):
    def __init__(self, node: Node) -> None:
        super().__init__(
            f"Node '{node.id}' of type '{node.type}' requires input data but none was resolved.",
            node,
        )


class InvalidDataset(DiagnosticError):
    def __init__(self, reason: str, node: Node | None = None) -> None:
        super().__init__(f"Invalid dataset: {reason}", node)


class UnknownGate(DiagnosticError):
    def __init__(self, gate: str, node: Node | None = None) -> None:
        super().__init__(f"Unknown gate: {gate}", node)


class UnknownEncoding(DiagnosticError):
    def __init__(self, method: str, node: Node | None = None) -> None:
        super().__init__(f"Unknown encoding method: {method}", node)


class InvalidQubitIndex(DiagnosticError):
    def __init__(self, gate: str, qubits: Sequence[int], num_qubits: int) -> None:
        super().__init__(
            f"Gate '{gate}' cannot act on qubits {list(qubits)} of a {num_qubits}-qubit state."
        )


class InvalidQubitCount(DiagnosticError):
    def __init__(self, actual: int, maximum: int) -> None:
        super().__init__(f"Number of qubits must be between 1 and {maximum}. Got {actual}.")


class UnknownModelType(DiagnosticError):
    def __init__(self, model_type: str, node: Node | None = None) -> None:
        super().__init__(f"Unknown model type: {model_type}", node)


class InvalidModelConfig(DiagnosticError):
    pass


class BackendUnavailable(DiagnosticError):
    def __init__(self, model_type: str, node: Node | None = None) -> None:
        super().__init__(
            f"Model type '{model_type}' requires a neural network backend but none is configured.",
            node,
        )


def attach_node[T: BaseException](exc: T, node: Node) -> T:
    """
    Attach the node an error occurred in, unless it already names one.
    """

    if isinstance(exc, DiagnosticError) and exc.node is None:
        exc.node = node
    return exc


class ProblemDetails(BaseModel):
    """
    Machine-readable error information (RFC 9457).

    :param type: URI identifying the problem type.
    :param title: Short summary of the problem type.
    :param status: HTTP status code generated for this problem.
    :param detail: Human-readable explanation of this occurrence.
    :param instance: Id of the node the problem occurred in.
    """

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str
    instance: str | None = None

    @classmethod
    def from_exception(cls, ex: BaseException, is_debug: bool = False) -> Self:
        """
        Build the problem details of an exception.
        Messages of non-diagnostic errors are only exposed in debug mode.
        """

        if isinstance(ex, DiagnosticError):
            return cls(
                title=type(ex).__name__,
                status=400,
                detail=ex.msg,
                instance=ex.node_id,
            )

        return cls(
            title="Internal Server Error",
            status=500,
            detail=(
                "".join(traceback.format_exception(ex))
                if is_debug
                else "An unexpected error occurred."
            ),
        )

    def to_response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status,
            content=self.model_dump(),
            media_type="application/problem+json",
        )


def _message(ex: BaseException) -> str:
    if isinstance(ex, DiagnosticError):
        return ex.msg
    return "<Redacted>"


def print_exception(stream: IO[str], ex: BaseException, indent: str = "") -> None:
    """
    Print the cause chain of an exception, redacting everything that is not a :class:`DiagnosticError`.
    """

    stream.write(f"{indent}{_message(ex)}\n")

    cause = ex.__cause__
    while cause is not None:
        stream.write(f"{indent}╰ {_message(cause)}\n")
        indent += "  "
        cause = cause.__cause__
