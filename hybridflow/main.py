"""
All fastapi endpoints available.
"""

import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from typing import Annotated
from uuid import UUID, uuid4

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.params import Depends
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.responses import JSONResponse, RedirectResponse

from hybridflow.config import Settings
from hybridflow.data.csv_ingest import LabelColumn, parse_csv
from hybridflow.data.samples import list_sample_datasets
from hybridflow.model.AggregatedResult import AggregatedResult
from hybridflow.model.exceptions import DiagnosticError, ProblemDetails
from hybridflow.model.StatusResponse import (
    CompletedStatus,
    FailedStatus,
    Progress,
    RunningStatus,
    StatusResponse,
    StatusType,
)
from hybridflow.model.WorkflowRequest import DatasetPayload, WorkflowRequest
from hybridflow.processing import WorkflowProcessor
from hybridflow.processing.validation import ValidationReport, WorkflowValidator
from hybridflow.results import error_result
from hybridflow.services import (
    get_db_engine,
    get_request_url,
    get_result_url,
    get_settings,
    hybridflow_lifespan,
)
from hybridflow.utils import (
    add_result_to_db,
    add_status_response_to_db,
    get_result_from_db,
    get_results_overview_from_db,
    get_status_response_from_db,
    get_workflow_payload,
    store_workflow_payload,
    update_status_response_in_db,
)

logger = logging.getLogger(__name__)

"""
Ensure we use the old `WindowsSelectorEventLoopPolicy` on windows
as the postgresql driver cannot work with the modern `ProactorEventLoop`.
"""
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

app = FastAPI(lifespan=hybridflow_lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=get_settings().cors_allow_credentials,
    allow_methods=get_settings().cors_allow_methods,
    allow_headers=get_settings().cors_allow_headers,
)


@app.post("/run")
async def post_run(
    processor: Annotated[
        WorkflowProcessor, Depends(WorkflowProcessor.from_workflow_request)
    ],
    background_tasks: BackgroundTasks,
    settings: Annotated[Settings, Depends(get_settings)],
    engine: Annotated[AsyncEngine, Depends(get_db_engine)],
) -> RedirectResponse:
    """
    Enqueue a :class:`~fastapi.background.BackgroundTasks` to execute the :class:`~hybridflow.model.WorkflowRequest`.
    """

    uuid: UUID = uuid4()
    metadata = processor.metadata
    status = RunningStatus.enqueue(uuid, metadata.name)

    await store_workflow_payload(engine, uuid, processor.request.model_dump_json())
    await add_status_response_to_db(engine, status, description=metadata.description)

    background_tasks.add_task(process_run, status, processor, settings, engine)

    return RedirectResponse(
        url=f"{settings.api_base_url}status/{uuid}",
        status_code=303,
    )


@app.get("/status/{uuid}")
async def get_status(
    uuid: UUID, engine: Annotated[AsyncEngine, Depends(get_db_engine)]
) -> StatusResponse:
    """
    Fetch status of a workflow run.

    :raises HTTPException: (Status 404) If no run with uuid is found
    """

    state = await get_status_response_from_db(engine, uuid)

    if state is None:
        raise HTTPException(
            status_code=404, detail=f"No workflow run with uuid '{uuid}' found."
        )

    return state


@app.get("/results", response_model=None)
async def get_results(
    engine: Annotated[AsyncEngine, Depends(get_db_engine)],
    settings: Annotated[Settings, Depends(get_settings)],
    status: StatusType | None = None,
) -> JSONResponse:
    """
    Fetch metadata of all runs, optionally filtered by status.
    """

    overview = await get_results_overview_from_db(engine, status=status)
    overview_with_links: list[dict[str, object]] = []
    for item in overview:
        item_uuid = item.get("uuid")
        if not isinstance(item_uuid, UUID):
            msg = "Result overview entry is missing a valid UUID."
            raise RuntimeError(msg)
        overview_with_links.append(
            {
                **item,
                "links": {
                    "status": f"{settings.api_base_url}status/{item_uuid}",
                    "result": get_result_url(item_uuid, settings),
                    "request": get_request_url(item_uuid, settings),
                },
            }
        )
    return JSONResponse(status_code=200, content=jsonable_encoder(overview_with_links))


@app.get("/results/{uuid}", response_model=None)
async def get_result(
    uuid: UUID,
    engine: Annotated[AsyncEngine, Depends(get_db_engine)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> JSONResponse:
    """
    Fetch the aggregated result of a workflow run.

    :raises HTTPException: (Status 404) If no result with uuid is found
    """

    result = await get_result_from_db(engine, uuid)

    if result is None:
        raise HTTPException(
            status_code=404, detail=f"No result for workflow run '{uuid}' found."
        )

    headers = {
        "Link": ", ".join(
            (
                f'<{get_request_url(uuid, settings)}>; rel="request"',
                f'<{get_result_url(uuid, settings)}>; rel="result"',
            )
        )
    }
    return JSONResponse(
        status_code=200, content=jsonable_encoder(result), headers=headers
    )


@app.get("/request/{uuid}", response_model=None)
async def get_request_payload(
    uuid: UUID, engine: Annotated[AsyncEngine, Depends(get_db_engine)]
) -> JSONResponse:
    """
    Fetch the original workflow request associated with a UUID.
    """

    payload = await get_workflow_payload(engine, uuid)
    if payload is None:
        raise HTTPException(
            status_code=404, detail=f"No workflow run with uuid '{uuid}' found."
        )

    return JSONResponse(status_code=200, content=json.loads(payload))


async def process_run(
    status: RunningStatus,
    processor: WorkflowProcessor,
    settings: Settings,
    engine: AsyncEngine,
) -> None:
    """
    Execute the :class:`~hybridflow.model.WorkflowRequest` and persist its result.

    Failed runs store an ``error`` result as well, so every run ends with a
    result at :func:`~hybridflow.services.get_result_url`.

    :param status: Status the run was enqueued with
    :param processor: Processor for this request
    :param settings: Settings from .env file
    :param engine: Database engine to use
    """

    async def report(progress: Progress) -> None:
        nonlocal status
        status = status.advance(progress)
        await update_status_response_in_db(engine, status)

    processor.progress = report
    result_url = get_result_url(status.uuid, settings)

    final: CompletedStatus | FailedStatus
    try:
        result = await processor.process()
        await add_result_to_db(engine, status.uuid, result)

        final = CompletedStatus(
            uuid=status.uuid,
            name=status.name,
            createdAt=status.createdAt,
            completedAt=datetime.now(UTC),
            progress=Progress.finished(status.progress.totalNodes),
            result=result_url,
            resultType=result.type,
        )
    except Exception as ex:
        logger.warning("Workflow run %s failed: %s", status.uuid, ex)
        await add_result_to_db(engine, status.uuid, error_result(ex, settings.debug))
        final = FailedStatus(
            uuid=status.uuid,
            name=status.name,
            createdAt=status.createdAt,
            completedAt=datetime.now(UTC),
            progress=status.progress,
            result=result_url,
            problem=ProblemDetails.from_exception(ex, settings.debug),
        )

    await update_status_response_in_db(engine, final)


@app.post("/debug/run")
async def post_debug_run(
    processor: Annotated[
        WorkflowProcessor, Depends(WorkflowProcessor.from_workflow_request)
    ],
) -> AggregatedResult:
    """
    Executes the workflow in one request and returns the aggregated result.
    No redirects and no polling of different endpoints needed.
    Failures are reported as a result of type ``error``.

    This endpoint should only be used for debugging purposes.
    """

    return await processor.run()


@app.post("/validate")
async def post_validate(
    request: WorkflowRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> ValidationReport:
    """
    Check a workflow for problems without executing it.
    """

    return WorkflowValidator(request, settings.max_qubits).validate()


@app.get("/datasets")
async def get_datasets() -> list[dict[str, str | int]]:
    """
    List the built-in sample datasets usable as input node configuration.
    """

    return list_sample_datasets()


@app.post(
    "/datasets/csv",
    response_model=None,
    responses={400: {"model": ProblemDetails}},
)
async def post_dataset_csv(
    file: Annotated[UploadFile, File()],
    has_headers: Annotated[bool, Form(alias="hasHeaders")] = True,
    label_column: Annotated[LabelColumn, Form(alias="labelColumn")] = "last",
) -> DatasetPayload | JSONResponse:
    """
    Parse an uploaded CSV file into a dataset usable as input node configuration.
    """

    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="Uploaded CSV file is empty.")

    try:
        text = data.decode("utf-8-sig")
        dataset = parse_csv(
            text,
            has_headers,
            label_column,
            name=file.filename or "Custom CSV",
        )
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=400, detail="Uploaded CSV file is not valid UTF-8."
        ) from None
    except DiagnosticError as ex:
        return ProblemDetails.from_exception(ex).to_response()

    return dataset.to_payload()
