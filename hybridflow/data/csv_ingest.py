"""
Parse uploaded CSV files into :class:`~hybridflow.data.dataset.Dataset`.

Unlike the editor's preview, values that are not numbers are rejected instead of being read as zero.
"""

import csv
import io
from typing import Literal

from hybridflow.data.dataset import Dataset
from hybridflow.model.exceptions import InvalidDataset

LabelColumn = Literal["first", "last", "none"]


def _parse_number(value: str, row: int, column: int) -> float:
    try:
        return float(value)
    except ValueError:
        raise InvalidDataset(
            f"Non-numeric value {value!r} at row {row}, column {column}."
        ) from None


def parse_csv(
    text: str,
    has_headers: bool = True,
    label_column: LabelColumn = "last",
    name: str = "Custom CSV",
) -> Dataset:
    """
    Parse comma-separated text.

    :param text: The file content.
    :param has_headers: Whether the first line holds column names.
    :param label_column: Which column holds the integer label, if any.
    :param name: Display name of the resulting dataset.
    :raises InvalidDataset: On non-numeric cells or rows of unequal length.
    """

    rows = [
        [cell.strip() for cell in row]
        for row in csv.reader(io.StringIO(text))
        if any(cell.strip() for cell in row)
    ]
    if not rows:
        raise InvalidDataset("CSV file is empty.")

    headers: list[str] | None = None
    if has_headers:
        headers, rows = rows[0], rows[1:]

    numeric = [
        [_parse_number(value, i, j) for j, value in enumerate(row)]
        for i, row in enumerate(rows)
    ]
    widths = {len(row) for row in numeric}
    if len(widths) > 1:
        raise InvalidDataset(f"CSV rows have different lengths {sorted(widths)}.")

    features: list[list[float]]
    labels: list[float] | None
    match label_column:
        case "first":
            features = [row[1:] for row in numeric]
            labels = [row[0] for row in numeric]
            names = headers[1:] if headers else None
        case "last":
            features = [row[:-1] for row in numeric]
            labels = [row[-1] for row in numeric]
            names = headers[:-1] if headers else None
        case "none":
            features = numeric
            labels = None
            names = headers

    dataset = Dataset.from_rows(features, labels, feature_names=names, name=name)
    dataset.metadata.update(
        {"source": "csv", "hasHeaders": has_headers, "labelColumn": label_column}
    )
    return dataset
