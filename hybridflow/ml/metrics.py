"""
Evaluation of classifier predictions.
"""

from collections.abc import Sequence
from typing import Any

import numpy as np


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def calculate_metrics(
    predictions: Sequence[int] | np.ndarray, labels: Sequence[int] | np.ndarray
) -> dict[str, Any]:
    """
    Binary classification metrics with class 1 as the positive class.

    Every ratio is 0 when its denominator is 0.
    The confusion matrix is laid out as ``[[tn, fp], [fn, tp]]`` for binary labels.
    With more than two non-negative classes it is the full
    :func:`multiclass_confusion_matrix` instead.

    :param predictions: Predicted label per sample.
    :param labels: True label per sample.
    """

    predicted = np.asarray(predictions, dtype=np.int64)
    actual = np.asarray(labels, dtype=np.int64)
    if predicted.shape != actual.shape:
        raise ValueError(
            f"Got {len(predicted)} predictions for {len(actual)} labels"
        )

    tp = int(np.sum((predicted == 1) & (actual == 1)))
    tn = int(np.sum((predicted == 0) & (actual == 0)))
    fp = int(np.sum((predicted == 1) & (actual == 0)))
    fn = int(np.sum((predicted == 0) & (actual == 1)))
    correct = int(np.sum(predicted == actual))
    total = len(actual)

    precision = _ratio(tp, tp + fp)
    recall = _ratio(tp, tp + fn)

    num_classes = int(max(predicted.max(initial=0), actual.max(initial=0))) + 1
    lowest = min(predicted.min(initial=0), actual.min(initial=0))
    multiclass = num_classes > 2 and lowest >= 0
    confusion = (
        multiclass_confusion_matrix(predicted, actual, num_classes)
        if multiclass
        else [[tn, fp], [fn, tp]]
    )

    return {
        "accuracy": _ratio(correct, total),
        "precision": precision,
        "recall": recall,
        "f1Score": _ratio(2 * precision * recall, precision + recall),
        "confusionMatrix": confusion,
        "numClasses": num_classes if multiclass else 2,
        "confusionMatrixRaw": {"tp": tp, "tn": tn, "fp": fp, "fn": fn},
        "totalSamples": total,
        "correctPredictions": correct,
    }


def multiclass_confusion_matrix(
    predictions: Sequence[int] | np.ndarray,
    labels: Sequence[int] | np.ndarray,
    num_classes: int | None = None,
) -> list[list[int]]:
    """Rows are true classes, columns predicted classes."""

    predicted = np.asarray(predictions, dtype=np.int64)
    actual = np.asarray(labels, dtype=np.int64)
    if num_classes is None:
        num_classes = int(max(predicted.max(initial=0), actual.max(initial=0))) + 1

    matrix = np.zeros((num_classes, num_classes), dtype=np.int64)
    np.add.at(matrix, (actual, predicted), 1)
    return matrix.tolist()
