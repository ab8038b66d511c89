"""
Tabular data flowing between the nodes of a workflow.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from numbers import Real
from typing import Any

import numpy as np
from numpy.typing import NDArray

from hybridflow.model.exceptions import InvalidDataset
from hybridflow.model.WorkflowRequest import DatasetPayload, Node

FloatMatrix = NDArray[np.float64]
IntVector = NDArray[np.int64]


def _to_float(value: object, row: int, column: int, node: Node | None) -> float:
    # bool is a subclass of int
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidDataset(
            f"Non-numeric value {value!r} at row {row}, column {column}.", node
        )
    result = float(value)
    if not math.isfinite(result):
        raise InvalidDataset(
            f"Non-finite value {value!r} at row {row}, column {column}.", node
        )
    return result


def _to_label(value: object, row: int, node: Node | None) -> int:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidDataset(f"Non-numeric label {value!r} at row {row}.", node)
    if not float(value).is_integer():
        raise InvalidDataset(f"Label {value!r} at row {row} is not an integer.", node)
    return int(value)


@dataclass(frozen=True, eq=False)
class Dataset:
    """Feature matrix with optional integer labels.

    :param features: Float matrix, rows are samples.
    :param labels: Integer label per row, or None for unlabelled data.
    :param feature_names: Column names.
    :param name: Display name.
    :param metadata: Applied operations, statistics and transformation flags.
    :param test: Held-out split produced by a train/test split.
    """

    features: FloatMatrix
    labels: IntVector | None = None
    feature_names: list[str] = field(default_factory=list)
    name: str = "dataset"
    metadata: dict[str, Any] = field(default_factory=dict)
    test: Dataset | None = None

    def __post_init__(self) -> None:
        if self.features.ndim != 2:
            raise InvalidDataset("Feature matrix must be two-dimensional.")
        if self.labels is not None and len(self.labels) != self.num_rows:
            raise InvalidDataset(
                f"Got {len(self.labels)} labels for {self.num_rows} feature rows."
            )

    @property
    def num_rows(self) -> int:
        return int(self.features.shape[0])

    @property
    def num_columns(self) -> int:
        return int(self.features.shape[1])

    @property
    def shape(self) -> tuple[int, int]:
        return (self.num_rows, self.num_columns)

    @property
    def has_labels(self) -> bool:
        return self.labels is not None

    def as_dataset(self) -> Dataset:
        return self

    def with_features(self, features: FloatMatrix, **metadata: Any) -> Dataset:
        """
        Copy of this dataset with a new feature matrix and additional metadata.
        Column names are dropped when the column count changes. The held-out
        split is not carried over.
        """

        names = (
            self.feature_names
            if features.shape[1] == self.num_columns
            else [f"x{i}" for i in range(features.shape[1])]
        )
        return replace(
            self,
            features=features,
            feature_names=names,
            metadata={**self.metadata, **metadata},
            test=None,
        )

    @staticmethod
    def from_rows(
        rows: Sequence[Sequence[object]],
        labels: Sequence[object] | None = None,
        *,
        feature_names: Sequence[str] | None = None,
        name: str = "dataset",
        node: Node | None = None,
    ) -> Dataset:
        """
        Build a dataset from raw rows, rejecting anything malformed.

        :param rows: Feature rows; all rows must have the same length.
        :param labels: Integer labels parallel to rows (optional).
        :param feature_names: Column names (optional).
        :param name: Display name.
        :param node: Node reported in errors.
        :raises InvalidDataset: On unequal rows, non-numeric values or mismatched labels.
        """

        if len(rows) == 0:
            raise InvalidDataset("Dataset has no rows.", node)

        width = None
        matrix: list[list[float]] = []
        for i, row in enumerate(rows):
            if isinstance(row, str | bytes) or not isinstance(
                row, Sequence | np.ndarray
            ):
                raise InvalidDataset(f"Row {i} is not a sequence of values.", node)
            if width is None:
                width = len(row)
            elif len(row) != width:
                raise InvalidDataset(
                    f"Row {i} has {len(row)} values, expected {width}.", node
                )
            matrix.append([_to_float(value, i, j, node) for j, value in enumerate(row)])

        if width == 0:
            raise InvalidDataset("Dataset has no feature columns.", node)

        label_array = None
        if labels is not None:
            if len(labels) != len(matrix):
                raise InvalidDataset(
                    f"Got {len(labels)} labels for {len(matrix)} feature rows.", node
                )
            label_array = np.array(
                [_to_label(label, i, node) for i, label in enumerate(labels)],
                dtype=np.int64,
            )

        names = list(feature_names) if feature_names else []
        if names and len(names) != width:
            raise InvalidDataset(
                f"Got {len(names)} feature names for {width} columns.", node
            )

        return Dataset(
            features=np.array(matrix, dtype=np.float64),
            labels=label_array,
            feature_names=names or [f"x{i}" for i in range(width or 0)],
            name=name,
        )

    @staticmethod
    def from_payload(payload: DatasetPayload, node: Node | None = None) -> Dataset:
        dataset = Dataset.from_rows(
            payload.features,
            payload.labels,
            feature_names=payload.featureNames,
            name=payload.name or "Custom dataset",
            node=node,
        )
        if payload.shape is not None and tuple(payload.shape) != dataset.shape:
            raise InvalidDataset(
                f"Declared shape {list(payload.shape)} does not match data shape {list(dataset.shape)}.",
                node,
            )
        return dataset

    def to_payload(self) -> DatasetPayload:
        return DatasetPayload(
            features=self.features.tolist(),
            labels=None if self.labels is None else self.labels.tolist(),
            featureNames=self.feature_names,
            name=self.name,
            shape=self.shape,
        )


def concatenate(parts: Sequence[Dataset], node: Node | None = None) -> Dataset:
    """Concatenate datasets row-wise, in the given order.

    This is a plain concatenation without any alignment or join semantics.
    Labels are kept only if every part is labelled.

    :raises InvalidDataset: On differing column counts or partially labelled parts.
    """

    if not parts:
        raise InvalidDataset("Nothing to merge.", node)

    widths = {part.num_columns for part in parts}
    if len(widths) != 1:
        raise InvalidDataset(
            f"Cannot merge inputs with different column counts {sorted(widths)}.", node
        )

    labelled = [part.labels for part in parts if part.labels is not None]
    if labelled and len(labelled) != len(parts):
        raise InvalidDataset("Cannot merge labelled and unlabelled inputs.", node)

    return Dataset(
        features=np.concatenate([part.features for part in parts], axis=0),
        labels=np.concatenate(labelled) if labelled else None,
        feature_names=parts[0].feature_names,
        name=" + ".join(part.name for part in parts),
        metadata={"sources": len(parts)},
    )
