"""
Values stored per node during a run.

Every tabular output exposes :meth:`as_dataset`, which the scheduler uses to feed successors.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from typing import Any

import numpy as np

from hybridflow.data.dataset import Dataset
from hybridflow.ml.models import EpochStats, KMeansModel, TrainedModel
from hybridflow.model.AggregatedResult import AggregatedResult
from hybridflow.model.exceptions import InvalidDataset
from hybridflow.quantum.simulator import QuantumRunResult


@dataclass(frozen=True, eq=False)
class TrainingOutput:
    """
    Output of a classification node.

    :param model_type: Name of the trained model type.
    :param model: Trained model, None when training was delegated to an external backend.
    :param dataset: Training data (carrying the held-out split, if any).
    :param predictions: Predicted label per training row.
    :param metrics: Metrics on the training data.
    :param history: Per-epoch statistics.
    :param test_predictions: Predicted label per held-out row.
    :param test_metrics: Metrics on the held-out rows.
    """

    model_type: str
    model: TrainedModel | None
    dataset: Dataset
    predictions: list[int]
    metrics: dict[str, Any]
    history: list[EpochStats] = field(default_factory=list)
    test_predictions: list[int] | None = None
    test_metrics: dict[str, Any] | None = None

    def as_dataset(self) -> Dataset:
        """The training features, labelled with the model's predictions."""

        return replace(
            self.dataset,
            labels=np.asarray(self.predictions, dtype=np.int64),
            metadata={
                **self.dataset.metadata,
                "predicted": True,
                "modelType": self.model_type,
            },
            test=None,
        )


@dataclass(frozen=True, eq=False)
class ClusteringOutput:
    model: KMeansModel
    dataset: Dataset

    def as_dataset(self) -> Dataset:
        """The clustered features, labelled with their cluster."""

        return replace(
            self.dataset,
            labels=self.model.assignments,
            metadata={**self.dataset.metadata, "clustered": True, "k": self.model.k},
            test=None,
        )


@dataclass(frozen=True, eq=False)
class QuantumOutput:
    """
    Output of a quantum node.

    :param runs: One circuit run per input row, or a single run without input.
    :param dataset: Quantum features, one row per run, with the input labels passed through.
    """

    runs: list[QuantumRunResult]
    dataset: Dataset

    def as_dataset(self) -> Dataset:
        return self.dataset

    @property
    def last_run(self) -> QuantumRunResult:
        return self.runs[-1]

    @property
    def counts(self) -> dict[str, int]:
        """Measurement counts summed over all runs."""

        total: Counter[str] = Counter()
        for run in self.runs:
            total.update(run.measurements.counts)
        return dict(sorted(total.items()))

    @property
    def fidelity(self) -> float:
        return float(np.mean([run.fidelity for run in self.runs]))

    @property
    def entropy(self) -> float:
        return float(np.mean([run.entropy for run in self.runs]))

    @property
    def sampling_fidelity(self) -> float:
        return float(np.mean([run.sampling_fidelity for run in self.runs]))


type NodeOutput = (
    Dataset | TrainingOutput | ClusteringOutput | QuantumOutput | AggregatedResult
)


def as_dataset(output: NodeOutput) -> Dataset:
    """Tabular view of any node output."""

    if isinstance(output, AggregatedResult):
        raise InvalidDataset(f"A {output.type} result cannot be used as input data.")
    return output.as_dataset()
