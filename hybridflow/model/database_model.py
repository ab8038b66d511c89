"""
Database schema for everything stored in the database.
"""

import uuid
from datetime import datetime

from sqlalchemy import UUID, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from hybridflow.model.StatusResponse import StatusType


class Base(DeclarativeBase):
    """
    Base class for database types.
    """


class StatusResponseDb(Base):
    """
    Latest status of every run, including its last reported progress.
    """

    __tablename__ = "process_states"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    status: Mapped[StatusType] = mapped_column(nullable=False)
    createdAt: Mapped[datetime] = mapped_column(nullable=False)
    completedAt: Mapped[datetime] = mapped_column(nullable=True)
    progressPercentage: Mapped[int] = mapped_column(nullable=False)
    progressCurrentStep: Mapped[str] = mapped_column(nullable=False)
    progressNodeId: Mapped[str | None] = mapped_column(String, nullable=True)
    progressExecutedNodes: Mapped[int] = mapped_column(nullable=False, default=0)
    progressTotalNodes: Mapped[int] = mapped_column(nullable=False, default=0)
    result: Mapped[str | None] = mapped_column(Text, nullable=True)
    resultType: Mapped[str | None] = mapped_column(String, nullable=True)
    problem: Mapped[str | None] = mapped_column(Text, nullable=True)
    name: Mapped[str | None] = mapped_column(String, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class RunResult(Base):
    """
    Store the aggregated result of a run as JSON.
    """

    __tablename__ = "run_results"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    result: Mapped[str] = mapped_column(Text, nullable=False)


class WorkflowPayload(Base):
    """
    Store the original workflow request payload.
    """

    __tablename__ = "workflow_payloads"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
