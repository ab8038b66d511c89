"""
This module defines the data models for workflow requests.
It provides classes to model metadata, node configurations, and the complete workflow graph
as it is produced by the visual editor.
"""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field


class MetaData(BaseModel):
    """
    Contains metadata for a workflow request.
    """

    name: str = Field(default="Untitled workflow", description="Name of the workflow.")
    description: str | None = Field(
        default=None, description="Human-readable description of the workflow."
    )
    seed: int | None = Field(
        default=None,
        description="Seed for every random step of a run (sampling, seeding, shuffling).",
    )


class DatasetPayload(BaseModel):
    """
    Tabular dataset as delivered by the editor or the CSV ingestion.

    Cell values are checked by :meth:`~hybridflow.data.dataset.Dataset.from_rows`.
    """

    features: list[list[object]] = Field(
        description="Feature matrix, one row per sample."
    )
    labels: list[object] | None = Field(
        default=None, description="Integer class label per row (optional)."
    )
    featureNames: list[str] | None = Field(
        default=None, description="Column names of the feature matrix (optional)."
    )
    name: str | None = Field(default=None, description="Display name of the dataset.")
    shape: tuple[int, int] | None = Field(
        default=None, description="Declared (rows, columns), checked against the data."
    )


class GateOp(BaseModel):
    """
    Single gate application within a circuit.
    """

    gate: str = Field(description='Gate name (e.g. "H", "CNOT", "RX").')
    qubits: list[Annotated[int, Field(ge=0)]] = Field(
        min_length=1,
        max_length=2,
        description="Target qubit, or (control, target) for CNOT.",
    )
    angle: float | None = Field(
        default=None, description="Rotation angle in radians for RX/RY/RZ."
    )


def _default_circuit() -> list[GateOp]:
    return [GateOp(gate="H", qubits=[0]), GateOp(gate="CNOT", qubits=[0, 1])]


class BaseNode(BaseModel):
    """
    Abstract base class for all node types used in a workflow request.
    """

    id: str = Field(description="Unique identifier for the node.")
    label: str | None = Field(
        default=None,
        description="Optional label for the node used for display purposes.",
    )


class InputConfig(BaseModel):
    dataset: str | DatasetPayload | None = Field(
        default=None,
        description="Name of a built-in sample dataset or an inline dataset.",
    )


class InputNode(BaseNode):
    """
    Node loading a dataset into the workflow.
    """

    type: Literal["input"] = "input"
    config: InputConfig = Field(default_factory=InputConfig)


PreprocessOperation = Literal[
    "normalize", "standardize", "scale", "pca", "polynomial", "selectVariance"
]


class PreprocessConfig(BaseModel):
    operations: list[PreprocessOperation] = Field(
        default_factory=lambda: ["normalize"],
        description="Operations applied in order.",
    )
    trainSplit: Annotated[int, Field(gt=0, lt=100)] | None = Field(
        default=None,
        description="Percentage of rows kept for training; the rest is held out.",
    )
    numComponents: int = Field(
        default=2, ge=1, description="Number of principal components kept by pca."
    )
    varianceThreshold: float = Field(
        default=0.01, ge=0, description="Minimum variance kept by selectVariance."
    )


class PreprocessNode(BaseNode):
    """
    Node transforming the feature matrix of its input.
    """

    type: Literal["preprocess"] = "preprocess"
    config: PreprocessConfig = Field(default_factory=PreprocessConfig)


class MLConfig(BaseModel):
    modelType: str = Field(
        default="perceptron",
        description='Model to train (e.g. "perceptron", "logistic", "knn").',
    )
    task: Literal["classification", "clustering"] = "classification"
    epochs: int = Field(default=50, ge=1)
    learningRate: float = Field(default=0.01, gt=0)
    k: int | None = Field(
        default=None, ge=1, description="Neighbours for knn, clusters for clustering."
    )
    maxIterations: int = Field(default=100, ge=1)
    hiddenUnits: list[Annotated[int, Field(ge=1)]] = Field(
        default_factory=lambda: [8],
        description="Hidden layer widths, only read by a configured neural backend.",
    )


class MLNode(BaseNode):
    """
    Node training a classical model on its input.
    """

    type: Literal["ml"] = "ml"
    config: MLConfig = Field(default_factory=MLConfig)


class QuantumConfig(BaseModel):
    numQubits: int = Field(default=2, ge=1)
    circuit: list[GateOp] = Field(default_factory=_default_circuit)
    shots: int = Field(default=1000, ge=1)
    encodingMethod: str = Field(
        default="angle", description='One of "basis", "angle" or "amplitude".'
    )


class QuantumNode(BaseNode):
    """
    Node simulating a quantum circuit, once per input row.
    """

    type: Literal["quantum"] = "quantum"
    config: QuantumConfig = Field(default_factory=QuantumConfig)


class OutputConfig(BaseModel):
    model_config = ConfigDict(extra="allow")


class OutputNode(BaseNode):
    """
    Terminal node turning its input into the result object.
    """

    type: Literal["output"] = "output"
    config: OutputConfig = Field(default_factory=OutputConfig)


Node = InputNode | PreprocessNode | MLNode | QuantumNode | OutputNode


class Edge(BaseModel):
    """
    Directed connection between two nodes.
    """

    source: str = Field(description="Source node id.")
    target: str = Field(description="Target node id.")


class WorkflowRequest(BaseModel):
    """
    Top-level object representing a full workflow graph.
    """

    metadata: MetaData = Field(
        default_factory=MetaData, description="General information about the run."
    )
    nodes: list[Annotated[Node, Field(discriminator="type")]] = Field(
        description="List of all nodes forming the workflow graph."
    )
    edges: list[Edge] = Field(
        default_factory=list,
        description="Directed edges defining the data flow between nodes.",
    )
