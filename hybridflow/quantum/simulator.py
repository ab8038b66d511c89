"""
State-vector simulator for small circuits.

A run prepares ``|0...0>``, optionally encodes one row of classical data,
applies the configured gates, samples measurements and condenses the
histogram into a fixed-length feature vector.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from hybridflow.model.exceptions import InvalidQubitCount, UnknownEncoding
from hybridflow.model.WorkflowRequest import GateOp
from hybridflow.quantum import gates
from hybridflow.quantum.amplitude import ComplexAmplitude
from hybridflow.quantum.gates import Gate, StateVector, bitstring
from hybridflow.quantum.metrics import (
    distribution_fidelity,
    is_entangled,
    purity,
    shannon_entropy,
    state_fidelity,
    trace_distance,
)

logger = logging.getLogger(__name__)

ENCODING_METHODS = ("basis", "angle", "amplitude")
TOP_PROBABILITIES = 4


@dataclass
class QuantumState:
    """
    Pure state of ``num_qubits`` qubits.

    :param num_qubits: Number of qubits.
    :param vector: ``2 ** num_qubits`` complex amplitudes.
    """

    num_qubits: int
    vector: StateVector

    @staticmethod
    def zero(num_qubits: int) -> QuantumState:
        vector = np.zeros(1 << num_qubits, dtype=np.complex128)
        vector[0] = 1.0
        return QuantumState(num_qubits, vector)

    @property
    def size(self) -> int:
        return len(self.vector)

    @property
    def amplitudes(self) -> list[ComplexAmplitude]:
        return [ComplexAmplitude.from_complex(complex(a)) for a in self.vector]

    @property
    def probabilities(self) -> np.ndarray:
        return np.abs(self.vector) ** 2

    @property
    def norm(self) -> float:
        return float(np.sqrt(np.sum(self.probabilities)))

    def normalize(self) -> None:
        norm = self.norm
        if norm > 0:
            self.vector /= norm

    def exact_probabilities(self, tolerance: float = 1e-12) -> dict[str, float]:
        """Born probability per bitstring, vanishing ones omitted."""

        return {
            bitstring(i, self.num_qubits): float(p)
            for i, p in enumerate(self.probabilities)
            if p > tolerance
        }

    def copy(self) -> QuantumState:
        return QuantumState(self.num_qubits, self.vector.copy())


@dataclass(frozen=True)
class MeasurementResult:
    """
    Histogram of repeated measurements in the computational basis.

    :param counts: Number of hits per bitstring; bitstrings never observed are omitted.
    :param probabilities: ``counts / shots`` per bitstring.
    :param shots: Number of samples taken.
    :param num_qubits: Width of every bitstring.
    """

    counts: dict[str, int]
    probabilities: dict[str, float]
    shots: int
    num_qubits: int


@dataclass
class QuantumRunResult:
    state: QuantumState
    measurements: MeasurementResult
    fidelity: float
    state_purity: float
    entropy: float
    quantum_features: list[float]
    gates_applied: int
    encoding_method: str
    had_input_data: bool
    sampling_fidelity: float
    circuit_overlap: float
    circuit_distance: float
    entangled: bool | None
    circuit: list[GateOp] = field(default_factory=list)


class QuantumEngine:
    """
    Stateless executor of quantum circuits.

    :param max_qubits: Largest register a state may be created for.
    """

    max_qubits: int

    def __init__(self, max_qubits: int = 16) -> None:
        self.max_qubits = max_qubits

    def create_state(self, num_qubits: int) -> QuantumState:
        if num_qubits < 1 or num_qubits > self.max_qubits:
            raise InvalidQubitCount(num_qubits, self.max_qubits)
        return QuantumState.zero(num_qubits)

    def apply_gate(
        self,
        state: QuantumState,
        gate: str | Gate,
        qubits: Sequence[int],
        angle: float | None = None,
    ) -> None:
        """
        Apply a gate to ``state`` in place.

        :param gate: Gate name, see :class:`~hybridflow.quantum.gates.Gate`.
        :param qubits: Target qubit, or ``[control, target]`` for CNOT.
        :param angle: Rotation angle in radians; defaults to ``pi / 4`` for rotations.
        :raises UnknownGate: If the gate name is not supported.
        :raises InvalidQubitIndex: If the qubits do not fit the gate or the state.
        """

        parsed = gate if isinstance(gate, Gate) else gates.parse_gate(gate)
        gates.apply(state.vector, state.num_qubits, parsed, qubits, angle)

    def encode(self, state: QuantumState, data: Sequence[float], method: str) -> None:
        """
        Load classical values into ``state`` (expected to be ``|0...0>``).

        - ``basis``: X on qubit ``i`` when ``data[i] > 0.5``.
        - ``angle``: RY(``data[i] * pi``) on qubit ``i``.
        - ``amplitude``: the first ``2 ** n`` values become the amplitudes, normalised.

        Values beyond the register are ignored.
        """

        match method:
            case "basis":
                for qubit, value in enumerate(data[: state.num_qubits]):
                    if value > 0.5:
                        self.apply_gate(state, Gate.X, [qubit])
            case "angle":
                for qubit, value in enumerate(data[: state.num_qubits]):
                    self.apply_gate(state, Gate.RY, [qubit], float(value) * math.pi)
            case "amplitude":
                values = np.asarray(data[: state.size], dtype=np.float64)
                norm = float(np.linalg.norm(values))
                if norm == 0:
                    return
                state.vector[:] = 0
                state.vector[: len(values)] = values / norm
            case _:
                raise UnknownEncoding(method)

    def measure(
        self, state: QuantumState, shots: int, rng: np.random.Generator
    ) -> MeasurementResult:
        """
        Sample ``shots`` outcomes by inverse-CDF lookup. The state is left untouched.
        """

        probabilities = state.probabilities
        cdf = np.cumsum(probabilities)
        samples = rng.random(shots) * cdf[-1]
        indices = np.minimum(
            np.searchsorted(cdf, samples, side="right"), state.size - 1
        )
        hits = np.bincount(indices, minlength=state.size)

        counts = {
            bitstring(i, state.num_qubits): int(hits[i])
            for i in range(state.size)
            if hits[i] > 0
        }
        return MeasurementResult(
            counts=counts,
            probabilities={key: count / shots for key, count in counts.items()},
            shots=shots,
            num_qubits=state.num_qubits,
        )

    def extract_features(self, result: MeasurementResult) -> list[float]:
        """
        Condense a histogram into ``min(4, 2 ** n) + n + 1`` features.

        The layout is the highest empirical probabilities (descending, ties by bitstring,
        zero padded), then the probability of reading 1 on each qubit, then the Shannon
        entropy of the histogram in bits.
        """

        n = result.num_qubits
        top_count = min(TOP_PROBABILITIES, 1 << n)

        ranked = sorted(result.probabilities.items(), key=lambda kv: (-kv[1], kv[0]))
        top = [p for _, p in ranked[:top_count]]
        top += [0.0] * (top_count - len(top))

        expectations = []
        for qubit in range(n):
            position = n - 1 - qubit
            expectation = sum(
                (1 if key[position] == "1" else -1) * p
                for key, p in result.probabilities.items()
            )
            expectations.append((expectation + 1) / 2)

        return [*top, *expectations, shannon_entropy(result.probabilities.values())]

    def run_workflow(
        self,
        num_qubits: int,
        circuit: Sequence[GateOp],
        shots: int,
        input_data: Sequence[float] | None = None,
        encoding_method: str = "angle",
        rng: np.random.Generator | None = None,
    ) -> QuantumRunResult:
        """
        Execute a complete circuit run.

        :param num_qubits: Register width.
        :param circuit: Gates applied after encoding, in order.
        :param shots: Number of measurement samples.
        :param input_data: Optional classical row to encode first.
        :param encoding_method: One of ``basis``, ``angle`` or ``amplitude``.
        :param rng: Source of randomness for sampling.
        """

        if encoding_method not in ENCODING_METHODS:
            raise UnknownEncoding(encoding_method)
        if shots < 1:
            raise ValueError(f"Number of shots must be positive. Got {shots}.")
        rng = rng if rng is not None else np.random.default_rng()

        state = self.create_state(num_qubits)
        had_input = False
        if input_data is not None and len(input_data) > 0:
            self.encode(state, input_data, encoding_method)
            had_input = True

        encoded = state.copy()
        for op in circuit:
            self.apply_gate(state, op.gate, op.qubits, op.angle)

        measurements = self.measure(state, shots, rng)
        fidelity = purity(measurements.probabilities.values())
        logger.debug(
            "Ran %d gates on %d qubits, %d distinct outcomes",
            len(circuit),
            num_qubits,
            len(measurements.counts),
        )

        return QuantumRunResult(
            state=state,
            measurements=measurements,
            fidelity=fidelity,
            state_purity=purity(state.probabilities),
            entropy=shannon_entropy(measurements.probabilities.values()),
            quantum_features=self.extract_features(measurements),
            gates_applied=len(circuit),
            encoding_method=encoding_method,
            had_input_data=had_input,
            sampling_fidelity=distribution_fidelity(
                measurements.probabilities, state.exact_probabilities()
            ),
            circuit_overlap=state_fidelity(encoded, state),
            circuit_distance=trace_distance(encoded, state),
            entangled=is_entangled(state) if num_qubits == 2 else None,
            circuit=list(circuit),
        )
