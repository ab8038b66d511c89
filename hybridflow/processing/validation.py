"""
Checks a workflow for structural and configuration problems before it is run.
"""

from typing import Literal

from networkx import has_path
from pydantic import BaseModel, ConfigDict

from hybridflow.model.exceptions import CycleDetected, DiagnosticError
from hybridflow.model.WorkflowRequest import (
    InputNode,
    MLNode,
    OutputNode,
    PreprocessNode,
    QuantumNode,
    WorkflowRequest,
)
from hybridflow.processing.graph import WorkflowGraph, compute_order
from hybridflow.quantum.gates import Gate

UNUSUAL_SPLIT = (50, 95)
MAX_EPOCHS = 1000
MAX_LEARNING_RATE = 0.1
SLOW_QUBIT_COUNT = 10


class ValidationIssue(BaseModel):
    severity: Literal["error", "warning"]
    """Errors prevent a run, warnings do not."""

    message: str
    """What is wrong."""

    fix: str | None = None
    """How to resolve the issue."""

    nodeId: str | None = None
    """Node the issue refers to, if any."""

    model_config = ConfigDict(use_attribute_docstrings=True)


class ValidationReport(BaseModel):
    isValid: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationIssue]


class WorkflowValidator:
    """
    Collects every issue of a workflow instead of stopping at the first one.

    :param request: The workflow to validate.
    :param max_qubits: Largest register the simulator accepts.
    """

    def __init__(self, request: WorkflowRequest, max_qubits: int) -> None:
        self.request = request
        self.max_qubits = max_qubits
        self.errors: list[ValidationIssue] = []
        self.warnings: list[ValidationIssue] = []

    def validate(self) -> ValidationReport:
        self.errors = []
        self.warnings = []

        graph = self._build_graph()
        self._check_structure()
        for node in self.request.nodes:
            match node:
                case PreprocessNode():
                    self._check_preprocess(node)
                case MLNode():
                    self._check_ml(node)
                case QuantumNode():
                    self._check_quantum(node)
        if graph is not None:
            self._check_connectivity(graph)

        return ValidationReport(
            isValid=not self.errors, errors=self.errors, warnings=self.warnings
        )

    def _error(
        self, message: str, fix: str | None = None, node_id: str | None = None
    ) -> None:
        self.errors.append(
            ValidationIssue(severity="error", message=message, fix=fix, nodeId=node_id)
        )

    def _warning(
        self, message: str, fix: str | None = None, node_id: str | None = None
    ) -> None:
        self.warnings.append(
            ValidationIssue(
                severity="warning", message=message, fix=fix, nodeId=node_id
            )
        )

    def _build_graph(self) -> WorkflowGraph | None:
        try:
            graph = WorkflowGraph.create(self.request.nodes, self.request.edges)
        except DiagnosticError as exc:
            self._error(exc.msg, node_id=exc.node_id)
            return None

        try:
            compute_order(graph)
        except CycleDetected as exc:
            self._error(exc.msg, "Remove one of the edges forming the cycle")
            return None
        return graph

    def _check_structure(self) -> None:
        nodes = self.request.nodes
        if not nodes:
            self._error("Workflow is empty", "Add nodes to create a pipeline")
        if not any(isinstance(node, InputNode) for node in nodes):
            self._error("No input node found", "Add an input node to load a dataset")
        if not any(isinstance(node, OutputNode) for node in nodes):
            self._error("No output node found", "Add an output node to see results")

    def _check_preprocess(self, node: PreprocessNode) -> None:
        split = node.config.trainSplit
        if split is not None and not UNUSUAL_SPLIT[0] <= split <= UNUSUAL_SPLIT[1]:
            self._warning(
                f"Unusual train/test split: {split}%",
                "Consider a split between 60% and 80%",
                node.id,
            )

    def _check_ml(self, node: MLNode) -> None:
        config = node.config
        if not config.modelType and config.task == "classification":
            self._error(
                f"ML node '{node.label or node.id}' has no model type selected",
                "Choose a model type",
                node.id,
            )
        if config.epochs > MAX_EPOCHS:
            self._warning(
                f"Very high epoch count: {config.epochs}",
                "Start with 50 to 200 epochs",
                node.id,
            )
        if config.learningRate > MAX_LEARNING_RATE:
            self._warning(
                f"High learning rate: {config.learningRate}",
                "Try a learning rate between 0.001 and 0.01",
                node.id,
            )

    def _check_quantum(self, node: QuantumNode) -> None:
        config = node.config
        if config.numQubits > self.max_qubits:
            self._error(
                f"Quantum node '{node.label or node.id}' uses {config.numQubits} qubits, "
                f"at most {self.max_qubits} are supported",
                "Reduce the number of qubits",
                node.id,
            )
        elif config.numQubits > SLOW_QUBIT_COUNT:
            self._warning(
                f"High qubit count: {config.numQubits}",
                "Simulating more than 10 qubits can be slow",
                node.id,
            )

        for op in config.circuit:
            if op.gate.upper() == Gate.CNOT and len(op.qubits) != 2:
                self._error(
                    f"CNOT needs a control and a target qubit, got {op.qubits}",
                    node_id=node.id,
                )
            if any(q >= config.numQubits for q in op.qubits):
                self._warning(
                    f"Gate {op.gate} acts on qubits {op.qubits}, "
                    f"but only {config.numQubits} are configured",
                    "Increase the number of qubits or change the circuit",
                    node.id,
                )

    def _check_connectivity(self, graph: WorkflowGraph) -> None:
        for node_id, node in graph.node_data.items():
            if isinstance(node, InputNode):
                continue
            if graph.in_degree(node_id) == 0:
                self._error(
                    f"Node '{node.label or node_id}' is not connected to any input",
                    "Connect this node to the workflow",
                    node_id,
                )

        nodes = graph.node_data.items()
        inputs = [n for n, node in nodes if isinstance(node, InputNode)]
        outputs = [n for n, node in nodes if isinstance(node, OutputNode)]
        if (
            inputs
            and outputs
            and not any(has_path(graph, i, o) for i in inputs for o in outputs)
        ):
            self._error(
                "No path from an input node to an output node",
                "Connect input, processing and output nodes",
            )
