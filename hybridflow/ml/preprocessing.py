"""
Column-wise feature transformations applied by preprocess nodes.

Every transformation returns the new feature matrix and a JSON-serialisable
dict of the statistics it used.
"""

import logging
import math
from collections.abc import Sequence
from dataclasses import replace
from typing import Any, assert_never

import numpy as np

from hybridflow.data.dataset import Dataset, FloatMatrix
from hybridflow.model.exceptions import InvalidDataset
from hybridflow.model.WorkflowRequest import PreprocessOperation

logger = logging.getLogger(__name__)

type Stats = dict[str, Any]


def normalize(data: FloatMatrix) -> tuple[FloatMatrix, Stats]:
    """Min-max scale each column to [0, 1]. Constant columns become 0."""

    mins = data.min(axis=0)
    maxs = data.max(axis=0)
    ranges = maxs - mins
    ranges[ranges == 0] = 1.0
    return (data - mins) / ranges, {
        "mins": mins.tolist(),
        "maxs": maxs.tolist(),
        "method": "normalize",
    }


def standardize(data: FloatMatrix) -> tuple[FloatMatrix, Stats]:
    """Shift each column to mean 0 and population standard deviation 1."""

    means = data.mean(axis=0)
    stds = data.std(axis=0)
    safe = stds.copy()
    safe[safe == 0] = 1.0
    return (data - means) / safe, {
        "means": means.tolist(),
        "stds": stds.tolist(),
        "method": "standardize",
    }


def scale(
    data: FloatMatrix, low: float = -1.0, high: float = 1.0
) -> tuple[FloatMatrix, Stats]:
    normalized, stats = normalize(data)
    return normalized * (high - low) + low, {
        **stats,
        "targetMin": low,
        "targetMax": high,
        "method": "scale",
    }


def pca(data: FloatMatrix, num_components: int = 2) -> tuple[FloatMatrix, Stats]:
    """
    Project onto the principal components of the sample covariance.

    Components are ordered by decreasing eigenvalue. Each eigenvector is
    oriented so that its entry of largest magnitude is positive.
    """

    num_samples, num_features = data.shape
    num_components = max(1, min(num_components, num_features, num_samples))

    means = data.mean(axis=0)
    centered = data - means
    covariance = centered.T @ centered / max(num_samples - 1, 1)

    eigenvalues, eigenvectors = np.linalg.eigh(covariance)
    order = np.argsort(eigenvalues, kind="stable")[::-1][:num_components]
    values = eigenvalues[order]
    vectors = eigenvectors[:, order]

    pivots = np.argmax(np.abs(vectors), axis=0)
    signs = np.sign(vectors[pivots, np.arange(vectors.shape[1])])
    signs[signs == 0] = 1.0
    vectors = vectors * signs

    total = float(np.sum(np.abs(eigenvalues)))
    explained = (
        (np.abs(values) / total).tolist() if total > 0 else [0.0] * num_components
    )

    return centered @ vectors, {
        "eigenvectors": vectors.T.tolist(),
        "eigenvalues": values.tolist(),
        "explainedVariance": explained,
        "means": means.tolist(),
        "numComponents": num_components,
    }


def add_polynomial_features(data: FloatMatrix) -> tuple[FloatMatrix, Stats]:
    """Append the degree-2 products ``x_i * x_j`` for ``i <= j``."""

    num_features = data.shape[1]
    pairs = [(i, j) for i in range(num_features) for j in range(i, num_features)]
    products = np.column_stack([data[:, i] * data[:, j] for i, j in pairs])
    names = [f"x{i}" for i in range(num_features)] + [f"x{i}*x{j}" for i, j in pairs]
    return np.hstack([data, products]), {"featureNames": names}


def select_features_by_variance(
    data: FloatMatrix, threshold: float = 0.01
) -> tuple[FloatMatrix, Stats]:
    """
    Keep the columns whose population variance exceeds ``threshold``.

    :raises InvalidDataset: If no column is left.
    """

    variances = data.var(axis=0)
    selected = np.flatnonzero(variances > threshold)
    if len(selected) == 0:
        raise InvalidDataset(f"No feature has a variance above {threshold}.")
    return data[:, selected], {
        "selectedIndices": selected.tolist(),
        "variances": variances.tolist(),
        "threshold": threshold,
    }


def train_test_split(
    dataset: Dataset, train_percent: int, rng: np.random.Generator
) -> tuple[Dataset, Dataset]:
    """
    Shuffle the rows and split off ``floor(n * (100 - train_percent) / 100)`` test rows.
    """

    n = dataset.num_rows
    num_test = math.floor(n * (100 - train_percent) / 100)
    num_train = n - num_test
    if num_train == 0 or num_test == 0:
        raise InvalidDataset(
            f"A {train_percent}% train split of {n} rows leaves an empty partition."
        )

    indices = rng.permutation(n)
    train_idx, test_idx = indices[:num_train], indices[num_train:]

    def take(idx: np.ndarray, suffix: str) -> Dataset:
        return replace(
            dataset,
            features=dataset.features[idx],
            labels=None if dataset.labels is None else dataset.labels[idx],
            name=f"{dataset.name} ({suffix})",
            test=None,
        )

    return take(train_idx, "train"), take(test_idx, "test")


def _apply(
    operation: PreprocessOperation,
    data: FloatMatrix,
    num_components: int,
    variance_threshold: float,
) -> tuple[FloatMatrix, Stats]:
    match operation:
        case "normalize":
            return normalize(data)
        case "standardize":
            return standardize(data)
        case "scale":
            return scale(data)
        case "pca":
            return pca(data, num_components)
        case "polynomial":
            return add_polynomial_features(data)
        case "selectVariance":
            return select_features_by_variance(data, variance_threshold)
        case _:
            assert_never(operation)


def _transform(
    operation: PreprocessOperation, data: FloatMatrix, stats: Stats
) -> FloatMatrix:
    """Apply ``operation`` to held-out rows with the statistics fitted on training rows."""

    match operation:
        case "normalize" | "scale":
            mins = np.array(stats["mins"])
            ranges = np.array(stats["maxs"]) - mins
            ranges[ranges == 0] = 1.0
            normalized = (data - mins) / ranges
            if operation == "normalize":
                return normalized
            low, high = stats["targetMin"], stats["targetMax"]
            return normalized * (high - low) + low
        case "standardize":
            stds = np.array(stats["stds"])
            stds[stds == 0] = 1.0
            return (data - np.array(stats["means"])) / stds
        case "pca":
            vectors = np.array(stats["eigenvectors"]).T
            return (data - np.array(stats["means"])) @ vectors
        case "polynomial":
            return add_polynomial_features(data)[0]
        case "selectVariance":
            return data[:, stats["selectedIndices"]]
        case _:
            assert_never(operation)


def preprocess(
    dataset: Dataset,
    operations: Sequence[PreprocessOperation],
    train_split: int | None = None,
    rng: np.random.Generator | None = None,
    *,
    num_components: int = 2,
    variance_threshold: float = 0.01,
) -> Dataset:
    """
    Apply ``operations`` in order, then optionally split off a test set.

    A held-out set from an earlier split is transformed with the statistics
    fitted on the training rows.

    :param dataset: Data to transform.
    :param operations: Transformations applied left to right.
    :param train_split: Percentage of rows kept for training; the rest goes to ``Dataset.test``.
    :param rng: Source of randomness for the split shuffle.
    :param num_components: Target dimension of ``pca``.
    :param variance_threshold: Cut-off of ``selectVariance``.
    :raises InvalidDataset: If ``train_split`` is given for data that is already split.
    """

    if train_split is not None and dataset.test is not None:
        raise InvalidDataset("Dataset already has a held-out test split.")

    data = dataset.features
    held_out = None if dataset.test is None else dataset.test.features
    stats: dict[str, Stats] = {}
    for operation in operations:
        data, stats[operation] = _apply(
            operation, data, num_components, variance_threshold
        )
        if held_out is not None:
            held_out = _transform(operation, held_out, stats[operation])
        logger.debug("Applied %s, shape is now %s", operation, data.shape)

    result = dataset.with_features(
        data,
        preprocessed=True,
        operations=list(operations),
        stats=stats,
        originalShape=list(dataset.shape),
    )
    if operations and operations[-1] == "polynomial":
        result = replace(result, feature_names=stats["polynomial"]["featureNames"])

    if dataset.test is not None and held_out is not None:
        test = replace(
            dataset.test.with_features(held_out, preprocessed=True),
            feature_names=result.feature_names,
        )
        return replace(result, test=test)

    if train_split is None:
        return result

    train, test = train_test_split(
        result, train_split, rng if rng is not None else np.random.default_rng()
    )
    return replace(
        train,
        test=test,
        metadata={
            **train.metadata,
            "split": {"train": train.num_rows, "test": test.num_rows},
        },
    )
