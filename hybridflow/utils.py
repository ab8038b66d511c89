"""
Utils used throughout the whole application.
"""

from typing import assert_never
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from hybridflow.model.AggregatedResult import AggregatedResult
from hybridflow.model.database_model import (
    RunResult,
    StatusResponseDb,
    WorkflowPayload,
)
from hybridflow.model.exceptions import ProblemDetails
from hybridflow.model.StatusResponse import (
    CompletedStatus,
    FailedStatus,
    Progress,
    RunningStatus,
    StatusResponse,
    StatusType,
)


def not_none[T](value: T | None, error_msg: str) -> T:
    """
    Returns value if not none or raises exception.

    :param value: Value to check.
    :param error_msg: Message to throw.
    :return: The none-none value.
    """

    if value is None:
        raise RuntimeError(error_msg)

    return value


def _write_status(row: StatusResponseDb, status: StatusResponse) -> None:
    row.status = status.status
    row.completedAt = status.completedAt
    row.progressPercentage = status.progress.percentage
    row.progressCurrentStep = status.progress.currentStep
    row.progressNodeId = status.progress.nodeId
    row.progressExecutedNodes = status.progress.executedNodes
    row.progressTotalNodes = status.progress.totalNodes
    row.result = status.result
    match status:
        case RunningStatus():
            row.resultType = None
            row.problem = None
        case CompletedStatus():
            row.resultType = status.resultType
            row.problem = None
        case FailedStatus():
            row.resultType = status.resultType
            row.problem = status.problem.model_dump_json()
        case _:
            assert_never(status)


async def add_status_response_to_db(
    engine: AsyncEngine,
    status: StatusResponse,
    *,
    description: str | None = None,
) -> None:
    """
    Add the :class:`~hybridflow.model.StatusResponse.StatusResponse` to the database

    :param engine: Database to insert the status in
    :param status: The status to add to the database
    :param description: Optional description originating from the request metadata
    """
    row = StatusResponseDb(
        id=status.uuid,
        createdAt=status.createdAt,
        name=status.name,
        description=description,
    )
    _write_status(row, status)

    async with AsyncSession(engine) as session:
        session.add(row)
        await session.commit()


async def update_status_response_in_db(
    engine: AsyncEngine, new_state: StatusResponse
) -> None:
    """
    Update the :class:`~hybridflow.model.StatusResponse.StatusResponse` in the database.
    Name and description of the run are kept.

    :param engine: Database engine to use.
    :param new_state: New status information to persist.
    """
    async with AsyncSession(engine) as session:
        row = await session.get(StatusResponseDb, new_state.uuid)
        if row is None:
            row = StatusResponseDb(
                id=new_state.uuid, createdAt=new_state.createdAt, name=new_state.name
            )
            session.add(row)
        _write_status(row, new_state)

        await session.commit()


async def get_status_response_from_db(
    engine: AsyncEngine, uuid: UUID
) -> StatusResponse | None:
    """
    Get the instance of :class:`~hybridflow.model.StatusResponse.StatusResponse` with the given uuid from the database

    :param engine: Database engine to get the status from
    :param uuid: UUID of the run
    :return: The status if found, otherwise None
    """
    async with AsyncSession(engine) as session:
        row = await session.get(StatusResponseDb, uuid)
        if row is None:
            return None

        progress = Progress(
            percentage=row.progressPercentage,
            currentStep=row.progressCurrentStep,
            nodeId=row.progressNodeId,
            executedNodes=row.progressExecutedNodes,
            totalNodes=row.progressTotalNodes,
        )
        common = {
            "uuid": uuid,
            "name": row.name,
            "createdAt": row.createdAt,
            "progress": progress,
        }

        match row.status:
            case StatusType.IN_PROGRESS:
                return RunningStatus(**common)
            case StatusType.COMPLETED:
                return CompletedStatus(
                    **common,
                    completedAt=row.completedAt,
                    result=row.result,
                    resultType=row.resultType,
                )
            case StatusType.FAILED:
                return FailedStatus(
                    **common,
                    completedAt=row.completedAt,
                    result=row.result,
                    problem=ProblemDetails.model_validate_json(
                        not_none(row.problem, f"Failed run {uuid} has no problem")
                    ),
                )


async def add_result_to_db(
    engine: AsyncEngine, uuid: UUID, result: AggregatedResult
) -> None:
    """
    Add the result of a run to the database.

    :param engine: Database engine to add the result to
    :param uuid: UUID of the run this result belongs to
    :param result: Aggregated result of the run
    """

    async with AsyncSession(engine) as session:
        await session.merge(RunResult(id=uuid, result=result.model_dump_json()))
        await session.commit()


async def get_result_from_db(
    engine: AsyncEngine, uuid: UUID
) -> AggregatedResult | None:
    async with AsyncSession(engine) as session:
        entity = await session.get(RunResult, uuid)
        if entity is None:
            return None
        return AggregatedResult.model_validate_json(entity.result)


async def get_results_overview_from_db(
    engine: AsyncEngine,
    status: StatusType | None = None,
) -> list[dict[str, object]]:
    """
    Retrieve basic metadata for every stored run, newest first.
    """
    async with AsyncSession(engine) as session:
        query = select(
            StatusResponseDb.id,
            StatusResponseDb.createdAt,
            StatusResponseDb.name,
            StatusResponseDb.description,
            StatusResponseDb.status,
            StatusResponseDb.resultType,
        ).order_by(StatusResponseDb.createdAt.desc())

        if status is not None:
            query = query.where(StatusResponseDb.status == status)

        rows = await session.execute(query)

        return [
            {
                "uuid": row.id,
                "created": row.createdAt,
                "name": row.name,
                "description": row.description,
                "status": StatusType(row.status).value,
                "resultType": row.resultType,
            }
            for row in rows.all()
        ]


async def store_workflow_payload(engine: AsyncEngine, uuid: UUID, payload: str) -> None:
    """
    Persist the original workflow request payload.
    """
    async with AsyncSession(engine) as session:
        await session.merge(WorkflowPayload(id=uuid, payload=payload))
        await session.commit()


async def get_workflow_payload(engine: AsyncEngine, uuid: UUID) -> str | None:
    """
    Retrieve the original workflow request payload if available.
    """
    async with AsyncSession(engine) as session:
        entity = await session.get(WorkflowPayload, uuid)
        return entity.payload if entity is not None else None
