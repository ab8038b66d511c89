import json

import numpy as np
import pytest

from hybridflow.data.dataset import Dataset
from hybridflow.ml.models import EpochStats, KMeansModel
from hybridflow.model.AggregatedResult import AggregatedResult
from hybridflow.model.exceptions import InvalidDataset, UnknownGate
from hybridflow.model.WorkflowRequest import GateOp
from hybridflow.outputs import ClusteringOutput, QuantumOutput, TrainingOutput
from hybridflow.quantum import QuantumEngine
from hybridflow.results import (
    aggregate,
    error_result,
    format_percentage,
    process_clustering,
    process_quantum,
    process_workflow_result,
)


def quantum_output(num_qubits: int, circuit: list[GateOp]) -> QuantumOutput:
    run = QuantumEngine().run_workflow(
        num_qubits, circuit, 64, rng=np.random.default_rng(0)
    )
    dataset = Dataset(features=np.array([run.quantum_features]))
    return QuantumOutput(runs=[run], dataset=dataset)


def training_output() -> TrainingOutput:
    dataset = Dataset.from_rows([[0], [1]], [0, 1])
    return TrainingOutput(
        model_type="perceptron",
        model=None,
        dataset=dataset,
        predictions=[0, 0],
        metrics={"accuracy": 0.5, "totalSamples": 2, "correctPredictions": 1},
        history=[EpochStats(1, 0.5, 0.5)],
    )


def test_format_percentage() -> None:
    assert format_percentage(None) == "N/A"
    assert format_percentage(0.5) == "50.00%"
    assert format_percentage(1 / 3) == "33.33%"


def test_ml_result() -> None:
    result = process_workflow_result(training_output())

    assert result.type == "ml"
    assert result.summary["accuracy"] == "50.00%"
    assert result.summary["precision"] == "N/A"
    assert result.rawData["trainingHistory"] == [
        {"epoch": 1, "accuracy": 0.5, "loss": 0.5}
    ]


def test_single_qubit_quantum_result() -> None:
    result = process_quantum(quantum_output(1, [GateOp(gate="X", qubits=[0])]))

    assert result.type == "quantum"
    assert result.rawData["measurements"] == {"1": 64}
    assert result.rawData["blochSphere"]["z"] == pytest.approx(-1)
    assert "concurrence" not in result.rawData
    assert result.summary["fidelity"] == "100.00%"
    assert result.summary["entropy"] == 0
    assert result.rawData["samplingFidelity"] == pytest.approx(1)
    assert result.rawData["circuitOverlap"] == pytest.approx(0)
    assert result.rawData["circuitDistance"] == pytest.approx(1)


def test_quantum_result_is_json() -> None:
    result = process_quantum(quantum_output(2, [GateOp(gate="H", qubits=[0])]))
    json.loads(result.model_dump_json())
    assert result.rawData["concurrence"] == pytest.approx(0)
    assert result.rawData["entangled"] is False


def test_bell_result_is_entangled() -> None:
    bell = [GateOp(gate="H", qubits=[0]), GateOp(gate="CNOT", qubits=[0, 1])]
    result = process_quantum(quantum_output(2, bell))

    assert result.rawData["entangled"] is True
    assert result.rawData["concurrence"] == pytest.approx(1)
    assert result.rawData["circuitOverlap"] == pytest.approx(0.5)
    assert 0.9 < result.rawData["samplingFidelity"] <= 1


def test_clustering_result() -> None:
    model = KMeansModel(
        centroids=np.array([[0.0], [10.0]]),
        assignments=np.array([0, 0, 0, 1], dtype=np.int64),
        iterations=2,
        converged=True,
        inertia=1.5,
    )

    result = process_clustering(
        ClusteringOutput(model=model, dataset=Dataset(features=np.zeros((4, 1))))
    )

    assert result.summary == {
        "numClusters": 2,
        "iterations": 2,
        "totalPoints": 4,
        "inertia": 1.5,
    }
    assert [c["percentage"] for c in result.rawData["clusters"]] == [
        "75.00%",
        "25.00%",
    ]


def test_aggregate_nothing() -> None:
    assert aggregate([]).type == "info"


def test_aggregate_passes_results_through() -> None:
    result = AggregatedResult(type="info", message="done")
    assert aggregate([result]) is result


def test_aggregate_hybrid() -> None:
    result = aggregate(
        [training_output(), quantum_output(1, [GateOp(gate="H", qubits=[0])])]
    )

    assert result.type == "ml"
    assert result.summary["workflow"] == "ML + Quantum"
    assert result.summary["mlAccuracy"] == "50.00%"
    assert result.summary["totalOperations"] == 3


def test_aggregate_merges_other_inputs() -> None:
    result = aggregate([Dataset.from_rows([[1]]), Dataset.from_rows([[2], [3]])])

    assert result.type == "info"
    assert result.summary == {"rows": 3, "columns": 1}


def test_aggregate_rejects_result_in_merge() -> None:
    with pytest.raises(InvalidDataset):
        aggregate([Dataset.from_rows([[1]]), AggregatedResult(type="info")])


def test_error_result() -> None:
    result = error_result(UnknownGate("SWAP"))

    assert result.is_error
    assert result.summary == {"error": "UnknownGate"}
    assert result.message == "Unknown gate: SWAP"
    assert result.rawData["clientError"]
    assert result.rawData["status"] == 400


def test_error_result_of_server_error() -> None:
    result = error_result(RuntimeError("internal"))

    assert result.rawData["status"] == 500
    assert not result.rawData["clientError"]
