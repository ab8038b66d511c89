"""
Training of the classical models.

Perceptron and logistic regression are trained online (one update per sample)
starting from zero weights, so the result only depends on the row order.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Protocol

import numpy as np

from hybridflow.data.dataset import Dataset, FloatMatrix, IntVector
from hybridflow.ml.metrics import calculate_metrics
from hybridflow.ml.models import (
    EpochStats,
    KMeansModel,
    KNNModel,
    LogisticModel,
    PerceptronModel,
    TrainedModel,
)
from hybridflow.model.exceptions import (
    BackendUnavailable,
    InvalidDataset,
    InvalidModelConfig,
    UnknownModelType,
)
from hybridflow.model.WorkflowRequest import MLConfig
from hybridflow.outputs import ClusteringOutput, TrainingOutput

logger = logging.getLogger(__name__)

NEURAL_MODEL_TYPES = ("neural-network", "deep-network")
DEFAULT_K = 3
LOG_EPSILON = 1e-15


@dataclass
class NeuralTrainingResult:
    predictions: list[int]
    metrics: dict[str, Any]
    history: list[EpochStats] = field(default_factory=list)


class NeuralBackend(Protocol):
    """
    External trainer for model types that need automatic differentiation.
    """

    async def train(
        self, features: FloatMatrix, labels: IntVector, config: MLConfig
    ) -> NeuralTrainingResult: ...


def _sigmoid(z: float) -> float:
    if z >= 0:
        return 1.0 / (1.0 + math.exp(-z))
    ez = math.exp(z)
    return ez / (1.0 + ez)


def _require_binary(labels: IntVector) -> None:
    unexpected = sorted(set(np.unique(labels).tolist()) - {0, 1})
    if unexpected:
        raise InvalidDataset(
            f"Binary classifiers require labels 0 and 1, got {unexpected}."
        )


def _squared_distances(points: FloatMatrix, centers: FloatMatrix) -> np.ndarray:
    """Matrix of squared euclidean distances, ``points x centers``."""
    diff = points[:, np.newaxis, :] - centers[np.newaxis, :, :]
    return np.sum(diff * diff, axis=2)


class MLEngine:
    """
    Trains classical models on feature matrices.

    :param neural_backend: Trainer for neural network model types, if available.
    """

    neural_backend: NeuralBackend | None

    def __init__(self, neural_backend: NeuralBackend | None = None) -> None:
        self.neural_backend = neural_backend

    def train_perceptron(
        self,
        features: FloatMatrix,
        labels: IntVector,
        epochs: int,
        learning_rate: float,
    ) -> PerceptronModel:
        _require_binary(labels)
        n, num_features = features.shape
        weights = np.zeros(num_features)
        bias = 0.0
        history: list[EpochStats] = []

        for epoch in range(epochs):
            total_error = 0
            correct = 0
            for x, y in zip(features, labels, strict=True):
                prediction = 1 if float(x @ weights) + bias >= 0 else 0
                error = int(y) - prediction
                if error == 0:
                    correct += 1
                    continue
                total_error += abs(error)
                bias += learning_rate * error
                weights += learning_rate * error * x

            history.append(EpochStats(epoch + 1, correct / n, total_error / n))
            if total_error == 0:
                break

        return PerceptronModel(weights=weights, bias=bias, history=history)

    def train_logistic(
        self,
        features: FloatMatrix,
        labels: IntVector,
        epochs: int,
        learning_rate: float,
    ) -> LogisticModel:
        _require_binary(labels)
        n, num_features = features.shape
        weights = np.zeros(num_features)
        bias = 0.0
        history: list[EpochStats] = []

        for epoch in range(epochs):
            total_loss = 0.0
            correct = 0
            for x, y in zip(features, labels, strict=True):
                p = _sigmoid(float(x @ weights) + bias)
                total_loss -= y * math.log(p + LOG_EPSILON) + (1 - y) * math.log(
                    1 - p + LOG_EPSILON
                )
                if (1 if p >= 0.5 else 0) == y:
                    correct += 1

                error = p - y
                bias -= learning_rate * error
                weights -= learning_rate * error * x

            history.append(EpochStats(epoch + 1, correct / n, total_loss / n))

        return LogisticModel(weights=weights, bias=bias, history=history)

    def train_knn(self, features: FloatMatrix, labels: IntVector, k: int) -> KNNModel:
        if k < 1:
            raise InvalidModelConfig(f"k must be at least 1. Got {k}.")
        return KNNModel(features=features, labels=labels, k=min(k, len(features)))

    def _knn_predict(self, model: KNNModel, x: np.ndarray) -> int:
        distances = np.linalg.norm(model.features - x, axis=1)
        nearest = np.argsort(distances, kind="stable")[: model.k]
        # np.unique sorts, argmax picks the first maximum: ties go to the lowest label
        values, votes = np.unique(model.labels[nearest], return_counts=True)
        return int(values[np.argmax(votes)])

    def train_clustering(
        self,
        features: FloatMatrix,
        k: int,
        max_iterations: int,
        rng: np.random.Generator,
    ) -> KMeansModel:
        """
        k-means with k-means++ seeding.

        Lloyd iterations start from all points assigned to cluster 0 and stop
        once an iteration leaves every assignment unchanged, or after ``max_iterations``.

        :raises InvalidModelConfig: If ``k`` is not between 1 and the number of points.
        """

        n = len(features)
        if k < 1 or k > n:
            raise InvalidModelConfig(f"k must be between 1 and {n}. Got {k}.")

        centroids = self._seed_centroids(features, k, rng)
        assignments = np.zeros(n, dtype=np.int64)
        converged = False
        iterations = 0

        while not converged and iterations < max_iterations:
            new_assignments = np.argmin(_squared_distances(features, centroids), axis=1)
            converged = bool(np.array_equal(new_assignments, assignments))
            assignments = new_assignments
            centroids = self._update_centroids(features, assignments, k)
            iterations += 1

        inertia = float(np.sum((features - centroids[assignments]) ** 2))
        logger.debug(
            "k-means with k=%d finished after %d iterations (converged=%s)",
            k,
            iterations,
            converged,
        )
        return KMeansModel(
            centroids=centroids,
            assignments=assignments.astype(np.int64),
            iterations=iterations,
            converged=converged,
            inertia=inertia,
        )

    @staticmethod
    def _seed_centroids(
        features: FloatMatrix, k: int, rng: np.random.Generator
    ) -> FloatMatrix:
        n = len(features)
        chosen = [int(rng.integers(n))]
        for _ in range(1, k):
            distances = np.min(_squared_distances(features, features[chosen]), axis=1)
            total = float(np.sum(distances))
            if total == 0:
                chosen.append(int(rng.integers(n)))
            else:
                chosen.append(int(rng.choice(n, p=distances / total)))
        return features[chosen].copy()

    @staticmethod
    def _update_centroids(
        features: FloatMatrix, assignments: IntVector, k: int
    ) -> FloatMatrix:
        centroids = np.zeros((k, features.shape[1]))
        for cluster in range(k):
            members = features[assignments == cluster]
            if len(members) > 0:
                centroids[cluster] = members.mean(axis=0)
        return centroids

    def predict(self, model: TrainedModel, features: FloatMatrix) -> IntVector:
        match model:
            case PerceptronModel():
                return (model.decision(features) >= 0).astype(np.int64)
            case LogisticModel():
                scores = model.decision(features)
                return (
                    np.array([_sigmoid(float(z)) for z in scores]) >= 0.5
                ).astype(np.int64)
            case KNNModel():
                return np.array(
                    [self._knn_predict(model, x) for x in features], dtype=np.int64
                )
            case KMeansModel():
                return np.argmin(
                    _squared_distances(features, model.centroids), axis=1
                ).astype(np.int64)

    async def train_classifier(
        self, dataset: Dataset, config: MLConfig
    ) -> TrainingOutput:
        """
        Train the configured classifier and evaluate it.

        :param dataset: Labelled training data, optionally carrying a held-out split.
        :param config: Model type and hyper-parameters.
        :raises UnknownModelType: If the model type is not supported.
        :raises BackendUnavailable: If a neural network is requested without a backend.
        """

        if dataset.labels is None:
            raise InvalidDataset("Classification requires labelled data.")
        features, labels = dataset.features, dataset.labels
        logger.info("Training %s on %d rows", config.modelType, dataset.num_rows)

        if config.modelType in NEURAL_MODEL_TYPES:
            if self.neural_backend is None:
                raise BackendUnavailable(config.modelType)
            result = await self.neural_backend.train(features, labels, config)
            return TrainingOutput(
                model_type=config.modelType,
                model=None,
                dataset=dataset,
                predictions=list(result.predictions),
                metrics=result.metrics,
                history=result.history,
            )

        model: TrainedModel
        match config.modelType:
            case "perceptron":
                model = self.train_perceptron(
                    features, labels, config.epochs, config.learningRate
                )
            case "logistic":
                model = self.train_logistic(
                    features, labels, config.epochs, config.learningRate
                )
            case "knn":
                model = self.train_knn(features, labels, config.k or DEFAULT_K)
            case other:
                raise UnknownModelType(other)

        predictions = self.predict(model, features)
        test_predictions: list[int] | None = None
        test_metrics = None
        if dataset.test is not None and dataset.test.labels is not None:
            test_predictions = self.predict(model, dataset.test.features).tolist()
            test_metrics = calculate_metrics(test_predictions, dataset.test.labels)

        return TrainingOutput(
            model_type=config.modelType,
            model=model,
            dataset=dataset,
            predictions=predictions.tolist(),
            metrics=calculate_metrics(predictions, labels),
            history=model.history,
            test_predictions=test_predictions,
            test_metrics=test_metrics,
        )

    def cluster(
        self, dataset: Dataset, config: MLConfig, rng: np.random.Generator
    ) -> ClusteringOutput:
        model = self.train_clustering(
            dataset.features, config.k or DEFAULT_K, config.maxIterations, rng
        )
        return ClusteringOutput(model=model, dataset=dataset)
