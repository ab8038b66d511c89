"""
Built-in sample datasets selectable from an input node.
"""

from dataclasses import dataclass

from hybridflow.data.dataset import Dataset
from hybridflow.model.exceptions import InvalidDataset
from hybridflow.model.WorkflowRequest import Node


@dataclass(frozen=True)
class SampleDataset:
    name: str
    description: str
    data: list[list[float]]
    labels: list[int]
    feature_names: list[str]
    target_names: list[str]


SAMPLE_DATASETS: dict[str, SampleDataset] = {
    "xor": SampleDataset(
        name="XOR Problem",
        description="Binary XOR classification (4 samples)",
        data=[[0, 0], [0, 1], [1, 0], [1, 1]],
        labels=[0, 1, 1, 0],
        feature_names=["x1", "x2"],
        target_names=["0", "1"],
    ),
    "iris": SampleDataset(
        name="Iris Flowers (Simplified)",
        description="Classic classification dataset (30 samples, 2 classes)",
        data=[
            [5.1, 3.5], [4.9, 3.0], [4.7, 3.2], [4.6, 3.1], [5.0, 3.6],
            [5.4, 3.9], [4.6, 3.4], [5.0, 3.4], [4.4, 2.9], [4.9, 3.1],
            [7.0, 3.2], [6.4, 3.2], [6.9, 3.1], [5.5, 2.3], [6.5, 2.8],
            [5.7, 2.8], [6.3, 3.3], [4.9, 2.4], [6.6, 2.9], [5.2, 2.7],
            [5.0, 2.0], [5.9, 3.0], [6.0, 2.2], [6.1, 2.9], [5.6, 2.9],
            [6.7, 3.1], [5.6, 3.0], [5.8, 2.7], [6.2, 2.2], [5.6, 2.5],
        ],  # fmt: skip
        labels=[0] * 10 + [1] * 20,
        feature_names=["sepal_length", "sepal_width"],
        target_names=["setosa", "versicolor"],
    ),
    "linear": SampleDataset(
        name="Linear Regression",
        description="Simple y = 2x + 1 relationship (20 samples)",
        data=[[float(x)] for x in range(20)],
        labels=[2 * x + 1 for x in range(20)],
        feature_names=["x"],
        target_names=["y"],
    ),
    "quantum_prep": SampleDataset(
        name="Quantum State Prep",
        description="Binary data for quantum state preparation (8 samples)",
        data=[
            [0, 0, 0], [0, 0, 1], [0, 1, 0], [0, 1, 1],
            [1, 0, 0], [1, 0, 1], [1, 1, 0], [1, 1, 1],
        ],  # fmt: skip
        labels=[0, 1, 1, 0, 1, 0, 0, 1],
        feature_names=["bit1", "bit2", "bit3"],
        target_names=["state_0", "state_1"],
    ),
}


def get_sample_dataset(key: str, node: Node | None = None) -> Dataset:
    """
    Load a built-in dataset by its key.

    :raises InvalidDataset: If no dataset with this key exists.
    """

    sample = SAMPLE_DATASETS.get(key)
    if sample is None:
        raise InvalidDataset(f'Dataset "{key}" not found.', node)

    dataset = Dataset.from_rows(
        sample.data,
        sample.labels,
        feature_names=sample.feature_names,
        name=sample.name,
        node=node,
    )
    dataset.metadata.update(
        {
            "description": sample.description,
            "targetNames": sample.target_names,
            "source": "builtin",
        }
    )
    return dataset


def list_sample_datasets() -> list[dict[str, str | int]]:
    return [
        {
            "id": key,
            "name": sample.name,
            "description": sample.description,
            "samples": len(sample.data),
            "features": len(sample.data[0]),
        }
        for key, sample in SAMPLE_DATASETS.items()
    ]
