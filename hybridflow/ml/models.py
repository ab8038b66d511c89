"""
Trained classical models.

Models are immutable once training has finished; retraining creates a new instance.
"""

from dataclasses import dataclass, field
from typing import Literal

import numpy as np

from hybridflow.data.dataset import FloatMatrix, IntVector


@dataclass(frozen=True)
class EpochStats:
    epoch: int
    accuracy: float
    loss: float

    def to_json(self) -> dict[str, float]:
        return {"epoch": self.epoch, "accuracy": self.accuracy, "loss": self.loss}


@dataclass(frozen=True, eq=False)
class PerceptronModel:
    """
    Linear classifier with a step activation.

    :param weights: One weight per feature.
    :param bias: Offset of the decision boundary.
    :param history: Per-epoch accuracy and mean absolute error.
    """

    weights: np.ndarray
    bias: float
    history: list[EpochStats] = field(default_factory=list)
    type: Literal["perceptron"] = "perceptron"

    def decision(self, features: FloatMatrix) -> np.ndarray:
        return features @ self.weights + self.bias


@dataclass(frozen=True, eq=False)
class LogisticModel:
    """
    Logistic regression classifier.

    :param weights: One weight per feature.
    :param bias: Offset of the decision boundary.
    :param history: Per-epoch accuracy and mean binary cross-entropy.
    """

    weights: np.ndarray
    bias: float
    history: list[EpochStats] = field(default_factory=list)
    type: Literal["logistic"] = "logistic"

    def decision(self, features: FloatMatrix) -> np.ndarray:
        return features @ self.weights + self.bias


@dataclass(frozen=True, eq=False)
class KNNModel:
    """The stored training data of a k-nearest-neighbour classifier."""

    features: FloatMatrix
    labels: IntVector
    k: int
    type: Literal["knn"] = "knn"

    @property
    def history(self) -> list[EpochStats]:
        return []


@dataclass(frozen=True, eq=False)
class KMeansModel:
    """
    Result of k-means clustering.

    :param centroids: One row per cluster.
    :param assignments: Cluster index per training point.
    :param iterations: Number of Lloyd iterations performed.
    :param converged: Whether the assignments stopped changing before the iteration limit.
    :param inertia: Sum of squared distances of every point to its centroid.
    """

    centroids: FloatMatrix
    assignments: IntVector
    iterations: int = 0
    converged: bool = False
    inertia: float = 0.0
    type: Literal["kmeans"] = "kmeans"

    @property
    def k(self) -> int:
        return int(self.centroids.shape[0])

    @property
    def cluster_sizes(self) -> list[int]:
        return np.bincount(self.assignments, minlength=self.k).tolist()


type TrainedModel = PerceptronModel | LogisticModel | KNNModel | KMeansModel
