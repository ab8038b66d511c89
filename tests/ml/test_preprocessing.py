import math

import numpy as np
import pytest

from hybridflow.data.dataset import Dataset
from hybridflow.ml.preprocessing import (
    add_polynomial_features,
    normalize,
    pca,
    preprocess,
    scale,
    select_features_by_variance,
    standardize,
    train_test_split,
)
from hybridflow.model.exceptions import InvalidDataset


def ten_rows() -> Dataset:
    return Dataset.from_rows(
        [[float(i), float(i % 3)] for i in range(10)], [i % 2 for i in range(10)]
    )


def test_normalize() -> None:
    data, stats = normalize(np.array([[0.0, 5.0], [10.0, 5.0], [5.0, 5.0]]))

    np.testing.assert_allclose(data, [[0, 0], [1, 0], [0.5, 0]])
    assert stats["mins"] == [0, 5]
    assert stats["maxs"] == [10, 5]


def test_standardize() -> None:
    data, stats = standardize(np.array([[1.0, 2.0], [3.0, 2.0]]))

    np.testing.assert_allclose(data, [[-1, 0], [1, 0]])
    assert stats["means"] == [2, 2]
    assert stats["stds"] == [1, 0]


def test_scale() -> None:
    data, stats = scale(np.array([[0.0], [5.0], [10.0]]))

    np.testing.assert_allclose(data, [[-1], [0], [1]])
    assert stats["targetMin"] == -1
    assert stats["targetMax"] == 1


def test_pca_of_correlated_columns() -> None:
    data, stats = pca(np.array([[1.0, 2.0], [2.0, 4.0], [3.0, 6.0]]), 1)

    root5 = math.sqrt(5)
    np.testing.assert_allclose(data, [[-root5], [0], [root5]], atol=1e-9)
    np.testing.assert_allclose(stats["eigenvectors"], [[1 / root5, 2 / root5]])
    assert stats["explainedVariance"][0] == pytest.approx(1)
    assert stats["numComponents"] == 1


def test_pca_caps_components() -> None:
    data, stats = pca(np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]), 5)
    assert data.shape == (3, 2)
    assert stats["numComponents"] == 2
    assert stats["eigenvalues"][0] >= stats["eigenvalues"][1]


def test_polynomial_features() -> None:
    data, stats = add_polynomial_features(np.array([[2.0, 3.0]]))

    np.testing.assert_allclose(data, [[2, 3, 4, 6, 9]])
    assert stats["featureNames"] == ["x0", "x1", "x0*x0", "x0*x1", "x1*x1"]


def test_select_features_by_variance() -> None:
    data, stats = select_features_by_variance(np.array([[1.0, 0.0], [1.0, 10.0]]))

    np.testing.assert_allclose(data, [[0], [10]])
    assert stats["selectedIndices"] == [1]


def test_select_features_keeps_nothing() -> None:
    with pytest.raises(InvalidDataset):
        select_features_by_variance(np.ones((3, 2)))


def test_train_test_split() -> None:
    train, test = train_test_split(ten_rows(), 70, np.random.default_rng(0))

    assert train.num_rows == 7
    assert test.num_rows == 3
    rows = sorted(np.concatenate([train.features, test.features])[:, 0].tolist())
    assert rows == [float(i) for i in range(10)]
    assert train.labels is not None
    assert len(train.labels) == 7


def test_train_test_split_rejects_empty_partition() -> None:
    with pytest.raises(InvalidDataset):
        train_test_split(Dataset.from_rows([[1.0], [2.0]]), 90, np.random.default_rng())


def test_preprocess_records_metadata() -> None:
    result = preprocess(ten_rows(), ["standardize", "normalize"])

    assert result.metadata["preprocessed"]
    assert result.metadata["operations"] == ["standardize", "normalize"]
    assert set(result.metadata["stats"]) == {"standardize", "normalize"}
    assert result.metadata["originalShape"] == [10, 2]
    assert result.features.min() == 0
    assert result.features.max() == 1
    assert result.test is None


def test_preprocess_names_polynomial_features() -> None:
    result = preprocess(ten_rows(), ["polynomial"])
    assert result.feature_names == ["x0", "x1", "x0*x0", "x0*x1", "x1*x1"]


def test_preprocess_with_split() -> None:
    result = preprocess(ten_rows(), ["normalize"], 80, np.random.default_rng(1))

    assert result.num_rows == 8
    assert result.test is not None
    assert result.test.num_rows == 2
    assert result.metadata["split"] == {"train": 8, "test": 2}


def test_preprocess_split_is_reproducible() -> None:
    first = preprocess(ten_rows(), [], 50, np.random.default_rng(9))
    second = preprocess(ten_rows(), [], 50, np.random.default_rng(9))
    np.testing.assert_array_equal(first.features, second.features)


def test_later_preprocess_transforms_held_out_rows() -> None:
    split = preprocess(ten_rows(), [], 80, np.random.default_rng(3))
    assert split.test is not None

    result = preprocess(split, ["polynomial"])

    assert result.test is not None
    assert result.test.shape == (2, 5)
    assert result.test.feature_names == result.feature_names
    expected, _ = add_polynomial_features(split.test.features)
    np.testing.assert_allclose(result.test.features, expected)


def test_held_out_rows_use_training_statistics() -> None:
    split = preprocess(ten_rows(), [], 80, np.random.default_rng(3))
    assert split.test is not None

    result = preprocess(split, ["normalize"])

    assert result.test is not None
    mins = split.features.min(axis=0)
    ranges = split.features.max(axis=0) - mins
    np.testing.assert_allclose(
        result.test.features, (split.test.features - mins) / ranges
    )


def test_held_out_rows_follow_pca_and_variance_selection() -> None:
    split = preprocess(ten_rows(), [], 80, np.random.default_rng(3))

    result = preprocess(
        split, ["standardize", "pca", "selectVariance"], num_components=1
    )

    assert result.test is not None
    assert result.test.num_columns == result.num_columns


def test_preprocess_rejects_second_split() -> None:
    split = preprocess(ten_rows(), [], 80, np.random.default_rng(3))
    with pytest.raises(InvalidDataset):
        preprocess(split, ["normalize"], 80, np.random.default_rng(3))
