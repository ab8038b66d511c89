"""
Measures on states and measurement histograms.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

import numpy as np

from hybridflow.quantum.amplitude import ComplexAmplitude
from hybridflow.quantum.gates import bitstring

if TYPE_CHECKING:
    from hybridflow.quantum.simulator import QuantumState


def purity(probabilities: Iterable[float]) -> float:
    """Sum of squared probabilities, 1 for a deterministic distribution."""
    return float(sum(p * p for p in probabilities))


def shannon_entropy(probabilities: Iterable[float]) -> float:
    """Entropy in bits, zero probabilities contribute nothing."""
    return float(-sum(p * math.log2(p) for p in probabilities if p > 0))


def state_fidelity(a: QuantumState, b: QuantumState) -> float:
    """Overlap ``|<a|b>|^2`` of two pure states."""

    if a.num_qubits != b.num_qubits:
        raise ValueError(
            f"Cannot compare states of {a.num_qubits} and {b.num_qubits} qubits"
        )
    return float(abs(np.vdot(a.vector, b.vector)) ** 2)


def trace_distance(a: QuantumState, b: QuantumState) -> float:
    """Trace distance of two pure states, ``sqrt(1 - F)``."""
    return math.sqrt(max(0.0, 1.0 - state_fidelity(a, b)))


def bloch_coordinates(state: QuantumState) -> tuple[float, float, float]:
    """
    Position of a single-qubit state on the Bloch sphere.

    :raises ValueError: If the state has more than one qubit.
    """

    if state.num_qubits != 1:
        raise ValueError("Bloch coordinates are only defined for a single qubit")

    alpha, beta = state.vector
    cross = np.conj(alpha) * beta
    return (
        float(2 * cross.real),
        float(2 * cross.imag),
        float(abs(alpha) ** 2 - abs(beta) ** 2),
    )


def concurrence(state: QuantumState) -> float:
    """
    Concurrence ``2 |a00 a11 - a01 a10|`` of a two-qubit pure state.

    :raises ValueError: If the state does not have exactly two qubits.
    """

    if state.num_qubits != 2:
        raise ValueError("Concurrence is only defined for two qubits")

    a00, a01, a10, a11 = state.vector
    return float(2 * abs(a00 * a11 - a01 * a10))


def is_entangled(state: QuantumState, tolerance: float = 1e-9) -> bool:
    return concurrence(state) > tolerance


def distribution_fidelity(p: Mapping[str, float], q: Mapping[str, float]) -> float:
    """Classical fidelity ``(sum sqrt(p_i q_i))^2`` of two histograms."""

    overlap = sum(math.sqrt(p[key] * q[key]) for key in p.keys() & q.keys())
    return float(overlap**2)


def state_visualization(
    state: QuantumState, limit: int | None = None, tolerance: float = 1e-12
) -> list[dict[str, object]]:
    """
    Basis states with non-vanishing probability, most likely first.
    """

    probabilities = state.probabilities
    order = sorted(
        (i for i in range(state.size) if probabilities[i] > tolerance),
        key=lambda i: (-probabilities[i], i),
    )
    if limit is not None:
        order = order[:limit]

    return [
        {
            "basis": bitstring(i, state.num_qubits),
            "probability": float(probabilities[i]),
            "amplitude": str(ComplexAmplitude.from_complex(complex(state.vector[i]))),
        }
        for i in order
    ]
