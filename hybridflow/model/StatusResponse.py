"""
Status of a workflow run as reported to the editor while it polls.

A run is :class:`RunningStatus` until its last node finished. It then ends as
:class:`CompletedStatus` or :class:`FailedStatus`, both of which point to the
stored :class:`~hybridflow.model.AggregatedResult.AggregatedResult`.
"""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Literal, Self
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hybridflow.model.AggregatedResult import ResultType
from hybridflow.model.exceptions import ProblemDetails


class StatusType(StrEnum):
    IN_PROGRESS = "in_progress"
    """Nodes are still being executed."""

    FAILED = "failed"
    """A node failed, the run ended with an ``error`` result."""

    COMPLETED = "completed"
    """Every node was executed."""


class Progress(BaseModel):
    """
    Position of a run within its execution order.
    """

    percentage: int = Field(ge=0, le=100)
    """Share of executed nodes, rounded down."""

    currentStep: str
    """Label of the node being executed, or a phase such as ``queued``."""

    nodeId: str | None = None
    """Id of the node being executed."""

    executedNodes: int = Field(default=0, ge=0)
    """Nodes finished so far."""

    totalNodes: int = Field(default=0, ge=0)
    """Nodes in the execution order, 0 while it is not known yet."""

    model_config = ConfigDict(use_attribute_docstrings=True)

    @classmethod
    def queued(cls) -> Self:
        return cls(percentage=0, currentStep="queued")

    @classmethod
    def at_node(cls, node_id: str, label: str | None, index: int, total: int) -> Self:
        """
        Progress right before the node at ``index`` of the execution order runs.
        """

        return cls(
            percentage=index * 100 // total if total else 0,
            currentStep=label or node_id,
            nodeId=node_id,
            executedNodes=index,
            totalNodes=total,
        )

    @classmethod
    def finished(cls, total: int) -> Self:
        return cls(
            percentage=100, currentStep="done", executedNodes=total, totalNodes=total
        )


class StatusBase(BaseModel):
    uuid: UUID
    """Id of the run."""

    name: str | None = None
    """Workflow name from the request metadata."""

    createdAt: datetime
    """When the run was enqueued."""

    progress: Progress
    """Last reported position of the run."""

    model_config = ConfigDict(use_attribute_docstrings=True)


class RunningStatus(StatusBase):
    status: Literal[StatusType.IN_PROGRESS] = StatusType.IN_PROGRESS

    completedAt: None = None
    result: None = None

    @classmethod
    def enqueue(cls, uuid: UUID, name: str | None = None) -> Self:
        return cls(
            uuid=uuid,
            name=name,
            createdAt=datetime.now(UTC),
            progress=Progress.queued(),
        )

    def advance(self, progress: Progress) -> Self:
        return self.model_copy(update={"progress": progress})


class CompletedStatus(StatusBase):
    status: Literal[StatusType.COMPLETED] = StatusType.COMPLETED

    completedAt: datetime
    """When the last node finished."""

    result: str
    """Location of the aggregated result."""

    resultType: ResultType
    """Kind of the aggregated result."""


class FailedStatus(StatusBase):
    status: Literal[StatusType.FAILED] = StatusType.FAILED

    completedAt: datetime
    """When the run was aborted."""

    result: str
    """Location of the ``error`` result."""

    resultType: Literal["error"] = "error"

    problem: ProblemDetails
    """Machine-readable error information."""


StatusResponse = RunningStatus | CompletedStatus | FailedStatus
