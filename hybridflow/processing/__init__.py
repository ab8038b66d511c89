"""Provides the core logic of the backend."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Annotated, assert_never

import numpy as np
from fastapi import Depends

from hybridflow.config import Settings
from hybridflow.data.dataset import Dataset
from hybridflow.data.samples import get_sample_dataset
from hybridflow.ml.engine import MLEngine, NeuralBackend
from hybridflow.ml.preprocessing import preprocess
from hybridflow.model.AggregatedResult import AggregatedResult
from hybridflow.model.exceptions import MissingInput, attach_node
from hybridflow.model.StatusResponse import Progress
from hybridflow.model.WorkflowRequest import (
    InputNode,
    MetaData,
    MLNode,
    Node,
    OutputNode,
    PreprocessNode,
    QuantumNode,
    WorkflowRequest,
)
from hybridflow.outputs import NodeOutput, QuantumOutput
from hybridflow.processing.graph import GraphScheduler, WorkflowGraph
from hybridflow.quantum.simulator import TOP_PROBABILITIES, QuantumEngine
from hybridflow.results import aggregate, error_result, info_result
from hybridflow.services import get_neural_backend, get_settings

logger = logging.getLogger(__name__)

type ProgressCallback = Callable[[Progress], Awaitable[None]]


def quantum_feature_names(num_qubits: int) -> list[str]:
    top = min(TOP_PROBABILITIES, 1 << num_qubits)
    return [
        *(f"p{i}" for i in range(top)),
        *(f"q{i}" for i in range(num_qubits)),
        "entropy",
    ]


class WorkflowProcessor:
    """Execute a :class:`~hybridflow.model.WorkflowRequest.WorkflowRequest`.

    Nodes run strictly one after another in topological order.
    If any node fails, the outputs of the run are discarded.

    :param request: The workflow to execute.
    :param settings: Settings from the .env file.
    :param neural_backend: Trainer for neural network model types.
    :param progress: Called before each node is executed.
    """

    request: WorkflowRequest
    settings: Settings
    scheduler: GraphScheduler | None
    quantum: QuantumEngine
    ml: MLEngine
    progress: ProgressCallback | None
    rng: np.random.Generator

    def __init__(
        self,
        request: WorkflowRequest,
        settings: Settings,
        neural_backend: NeuralBackend | None = None,
        progress: ProgressCallback | None = None,
    ) -> None:
        self.request = request
        self.settings = settings
        self.scheduler = None
        self.quantum = QuantumEngine(settings.max_qubits)
        self.ml = MLEngine(neural_backend)
        self.progress = progress
        self.rng = np.random.default_rng(request.metadata.seed)

    @staticmethod
    def from_workflow_request(
        request: WorkflowRequest,
        settings: Annotated[Settings, Depends(get_settings)],
        neural_backend: Annotated[NeuralBackend | None, Depends(get_neural_backend)],
    ) -> WorkflowProcessor:
        return WorkflowProcessor(request, settings, neural_backend)

    @property
    def metadata(self) -> MetaData:
        return self.request.metadata

    async def process(self) -> AggregatedResult:
        """
        Execute every node and aggregate the output of the last output node.

        The execution order is computed before any node runs, so a cyclic graph
        fails without side effects.

        :raises CycleDetected: If the graph contains a cycle.
        :raises DiagnosticError: If the workflow is invalid for any other reason.
        """

        graph = WorkflowGraph.create(self.request.nodes, self.request.edges)
        scheduler = GraphScheduler(graph)
        self.scheduler = scheduler
        order = scheduler.execution_order()
        logger.info("Executing workflow '%s' in order %s", self.metadata.name, order)

        result: AggregatedResult | None = None
        try:
            for index, node_id in enumerate(order):
                node = graph.node_data[node_id]
                await self._report(node, index, len(order))

                try:
                    output = await self._execute(node)
                except Exception as exc:
                    attach_node(exc, node)
                    raise

                scheduler.store(node_id, output)
                if isinstance(output, AggregatedResult):
                    result = output

                if self.settings.node_delay > 0:
                    await asyncio.sleep(self.settings.node_delay)
        except BaseException:
            scheduler.clear()
            raise

        if result is None:
            return info_result("Workflow executed successfully, but has no output node")
        return result

    async def run(self) -> AggregatedResult:
        """
        Like :meth:`process`, but failures are reported as an ``error`` result.
        """

        try:
            return await self.process()
        except Exception as ex:
            logger.warning("Workflow '%s' failed: %s", self.metadata.name, ex)
            return error_result(ex, self.settings.debug)

    async def _report(self, node: Node, index: int, total: int) -> None:
        if self.progress is None:
            return
        await self.progress(Progress.at_node(node.id, node.label, index, total))

    async def _execute(self, node: Node) -> NodeOutput:
        scheduler = self._scheduler()
        logger.debug("Executing node '%s' (%s)", node.id, node.type)

        match node:
            case InputNode():
                return self._run_input(node, scheduler.resolve_dataset(node.id))
            case PreprocessNode():
                return self._run_preprocess(node, self._require_input(node))
            case MLNode():
                return await self._run_ml(node, self._require_input(node))
            case QuantumNode():
                return self._run_quantum(node, scheduler.resolve_dataset(node.id))
            case OutputNode():
                return aggregate(
                    [output for _, output in scheduler.predecessor_outputs(node.id)]
                )
            case _:
                assert_never(node)

    def _scheduler(self) -> GraphScheduler:
        if self.scheduler is None:
            raise RuntimeError("Scheduler is only available during process()")
        return self.scheduler

    def _require_input(self, node: Node) -> Dataset:
        dataset = self._scheduler().resolve_dataset(node.id)
        if dataset is None:
            raise MissingInput(node)
        return dataset

    def _run_input(self, node: InputNode, resolved: Dataset | None) -> Dataset:
        match node.config.dataset:
            case str() as key:
                return get_sample_dataset(key, node)
            case None:
                if resolved is None:
                    raise MissingInput(node)
                return resolved
            case payload:
                return Dataset.from_payload(payload, node)

    def _run_preprocess(self, node: PreprocessNode, data: Dataset) -> Dataset:
        config = node.config
        return preprocess(
            data,
            config.operations,
            config.trainSplit,
            self.rng,
            num_components=config.numComponents,
            variance_threshold=config.varianceThreshold,
        )

    async def _run_ml(self, node: MLNode, data: Dataset) -> NodeOutput:
        if node.config.task == "clustering":
            return self.ml.cluster(data, node.config, self.rng)
        return await self.ml.train_classifier(data, node.config)

    def _run_quantum(self, node: QuantumNode, data: Dataset | None) -> QuantumOutput:
        config = node.config
        shots = (
            config.shots
            if "shots" in config.model_fields_set
            else self.settings.default_shots
        )
        rows: list[np.ndarray | None] = [None] if data is None else list(data.features)

        runs = [
            self.quantum.run_workflow(
                config.numQubits,
                config.circuit,
                shots,
                input_data=row,
                encoding_method=config.encodingMethod,
                rng=self.rng,
            )
            for row in rows
        ]

        dataset = Dataset(
            features=np.array([run.quantum_features for run in runs], dtype=np.float64),
            labels=None if data is None else data.labels,
            feature_names=quantum_feature_names(config.numQubits),
            name="Quantum features" if data is None else f"{data.name} (quantum)",
            metadata={
                "quantumTransformed": True,
                "encodingMethod": config.encodingMethod,
                "numQubits": config.numQubits,
            },
            test=None,
        )
        return QuantumOutput(runs=runs, dataset=dataset)

