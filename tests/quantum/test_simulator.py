import math

import numpy as np
import pytest

from hybridflow.model.exceptions import InvalidQubitCount, UnknownEncoding, UnknownGate
from hybridflow.model.WorkflowRequest import GateOp
from hybridflow.quantum import QuantumEngine, QuantumState
from hybridflow.quantum.simulator import MeasurementResult

BELL = [GateOp(gate="H", qubits=[0]), GateOp(gate="CNOT", qubits=[0, 1])]


@pytest.fixture
def engine() -> QuantumEngine:
    return QuantumEngine(max_qubits=8)


def test_create_state(engine: QuantumEngine) -> None:
    state = engine.create_state(3)
    assert state.size == 8
    assert state.vector[0] == 1
    assert state.norm == pytest.approx(1)


@pytest.mark.parametrize("num_qubits", [0, 9])
def test_create_state_rejects_qubit_count(
    engine: QuantumEngine, num_qubits: int
) -> None:
    with pytest.raises(InvalidQubitCount):
        engine.create_state(num_qubits)


def test_apply_unknown_gate(engine: QuantumEngine) -> None:
    with pytest.raises(UnknownGate):
        engine.apply_gate(engine.create_state(1), "T", [0])


def test_bell_run(engine: QuantumEngine) -> None:
    result = engine.run_workflow(2, BELL, 2000, rng=np.random.default_rng(42))

    counts = result.measurements.counts
    assert set(counts) <= {"00", "11"}
    assert sum(counts.values()) == 2000
    assert 0.44 < counts.get("00", 0) / 2000 < 0.56
    assert result.gates_applied == 2
    assert not result.had_input_data
    assert result.state_purity == pytest.approx(0.5)
    assert result.fidelity == pytest.approx(0.5, abs=0.05)
    assert result.entropy == pytest.approx(1, abs=0.05)

    features = result.quantum_features
    assert len(features) == 4 + 2 + 1
    assert features[2:4] == [0.0, 0.0]
    assert features[4] == pytest.approx(features[5])
    assert features[-1] == result.entropy


def test_runs_are_reproducible(engine: QuantumEngine) -> None:
    first = engine.run_workflow(2, BELL, 500, rng=np.random.default_rng(7))
    second = engine.run_workflow(2, BELL, 500, rng=np.random.default_rng(7))
    assert first.measurements.counts == second.measurements.counts


def test_basis_encoding(engine: QuantumEngine) -> None:
    result = engine.run_workflow(
        2,
        [],
        100,
        input_data=[1.0, 0.0],
        encoding_method="basis",
        rng=np.random.default_rng(0),
    )

    assert result.had_input_data
    assert result.measurements.counts == {"01": 100}
    assert result.quantum_features == [1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0]


def test_angle_encoding(engine: QuantumEngine) -> None:
    state = engine.create_state(1)
    engine.encode(state, [1.0], "angle")
    assert state.probabilities[1] == pytest.approx(1)

    state = engine.create_state(1)
    engine.encode(state, [0.5], "angle")
    assert state.probabilities[0] == pytest.approx(0.5)


def test_amplitude_encoding(engine: QuantumEngine) -> None:
    state = engine.create_state(2)
    engine.encode(state, [3.0, 0.0, 0.0, 4.0, 9.0], "amplitude")
    np.testing.assert_allclose(state.vector, [0.6, 0, 0, 0.8])


def test_amplitude_encoding_of_zeros_keeps_ground_state(engine: QuantumEngine) -> None:
    state = engine.create_state(2)
    engine.encode(state, [0.0, 0.0], "amplitude")
    np.testing.assert_allclose(state.vector, [1, 0, 0, 0])


def test_encoding_ignores_extra_values(engine: QuantumEngine) -> None:
    state = engine.create_state(1)
    engine.encode(state, [0.0, 1.0, 1.0], "basis")
    np.testing.assert_allclose(state.vector, [1, 0])


def test_unknown_encoding(engine: QuantumEngine) -> None:
    with pytest.raises(UnknownEncoding):
        engine.run_workflow(1, [], 10, input_data=[1.0], encoding_method="phase")


def test_shots_must_be_positive(engine: QuantumEngine) -> None:
    with pytest.raises(ValueError):
        engine.run_workflow(1, [], 0)


def test_measure_keeps_state(engine: QuantumEngine) -> None:
    state = engine.create_state(1)
    engine.apply_gate(state, "H", [0])
    before = state.copy()
    result = engine.measure(state, 200, np.random.default_rng(1))

    np.testing.assert_allclose(state.vector, before.vector)
    assert sum(result.counts.values()) == 200
    assert sum(result.probabilities.values()) == pytest.approx(1)


def test_measure_never_returns_impossible_outcomes(engine: QuantumEngine) -> None:
    state = engine.create_state(2)
    engine.apply_gate(state, "X", [1])
    result = engine.measure(state, 1000, np.random.default_rng(3))
    assert result.counts == {"10": 1000}


def test_extract_features_orders_and_pads(engine: QuantumEngine) -> None:
    result = MeasurementResult(
        counts={"000": 1, "011": 3},
        probabilities={"000": 0.25, "011": 0.75},
        shots=4,
        num_qubits=3,
    )

    features = engine.extract_features(result)

    assert features[:4] == [0.75, 0.25, 0.0, 0.0]
    assert features[4:7] == [pytest.approx(0.75), pytest.approx(0.75), 0.0]
    assert features[7] == pytest.approx(
        -(0.25 * math.log2(0.25) + 0.75 * math.log2(0.75))
    )


def test_extract_features_ties_by_bitstring(engine: QuantumEngine) -> None:
    result = MeasurementResult(
        counts={"1": 5, "0": 5},
        probabilities={"1": 0.5, "0": 0.5},
        shots=10,
        num_qubits=1,
    )
    assert engine.extract_features(result) == [0.5, 0.5, 0.5, 1.0]


def test_state_normalize() -> None:
    state = QuantumState(1, np.array([3, 4], dtype=np.complex128))
    state.normalize()
    assert state.norm == pytest.approx(1)
    assert str(state.amplitudes[1]) == "0.800 + 0.000i"


def test_extract_features_expectations_follow_qubit_index(
    engine: QuantumEngine,
) -> None:
    # "001" has qubit 0 set, the rightmost character
    result = MeasurementResult(
        counts={"001": 2}, probabilities={"001": 1.0}, shots=2, num_qubits=3
    )

    features = engine.extract_features(result)

    assert features[4:7] == [1.0, 0.0, 0.0]
    assert len(features) == 4 + 3 + 1
