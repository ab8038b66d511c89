"""
Gate kernels acting in place on a state vector.

Basis index ``i`` encodes qubit ``q`` in bit ``q`` (qubit 0 is the least significant bit).
Single-qubit gates pair every index ``i`` with the target bit clear with ``j = i | (1 << target)``
and apply a 2x2 unitary to ``(amplitude[i], amplitude[j])``.
"""

import math
from collections.abc import Sequence
from enum import StrEnum

import numpy as np
from numpy.typing import NDArray

from hybridflow.model.exceptions import InvalidQubitIndex, UnknownGate

StateVector = NDArray[np.complex128]

DEFAULT_ROTATION_ANGLE = math.pi / 4


def bitstring(index: int, num_qubits: int) -> str:
    """Render a basis index with qubit 0 as the rightmost character."""
    return format(index, f"0{num_qubits}b")


class Gate(StrEnum):
    H = "H"
    X = "X"
    Y = "Y"
    Z = "Z"
    CNOT = "CNOT"
    RX = "RX"
    RY = "RY"
    RZ = "RZ"

    @property
    def arity(self) -> int:
        return 2 if self is Gate.CNOT else 1

    @property
    def is_rotation(self) -> bool:
        return self in (Gate.RX, Gate.RY, Gate.RZ)


def parse_gate(name: str) -> Gate:
    """
    Look up a gate by name (case-insensitive).

    :raises UnknownGate: If the name does not denote a supported gate.
    """

    try:
        return Gate(name.upper())
    except ValueError:
        raise UnknownGate(name) from None


_SQRT_HALF = 1 / math.sqrt(2)

_FIXED_MATRICES: dict[Gate, NDArray[np.complex128]] = {
    Gate.H: np.array(
        [[_SQRT_HALF, _SQRT_HALF], [_SQRT_HALF, -_SQRT_HALF]], dtype=np.complex128
    ),
    Gate.X: np.array([[0, 1], [1, 0]], dtype=np.complex128),
    Gate.Y: np.array([[0, -1j], [1j, 0]], dtype=np.complex128),
    Gate.Z: np.array([[1, 0], [0, -1]], dtype=np.complex128),
}


def gate_matrix(gate: Gate, angle: float | None = None) -> NDArray[np.complex128]:
    """
    2x2 unitary of a single-qubit gate.

    Rotations use ``c = cos(angle / 2)`` and ``s = sin(angle / 2)``:

    - RX: ``[[c, -is], [-is, c]]``
    - RY: ``[[c, -s], [s, c]]``
    - RZ: ``[[c - is, 0], [0, c + is]]``
    """

    if gate in _FIXED_MATRICES:
        return _FIXED_MATRICES[gate]

    theta = DEFAULT_ROTATION_ANGLE if angle is None else angle
    c = math.cos(theta / 2)
    s = math.sin(theta / 2)
    match gate:
        case Gate.RX:
            return np.array([[c, -1j * s], [-1j * s, c]], dtype=np.complex128)
        case Gate.RY:
            return np.array([[c, -s], [s, c]], dtype=np.complex128)
        case Gate.RZ:
            return np.array([[c - 1j * s, 0], [0, c + 1j * s]], dtype=np.complex128)
        case _:
            raise ValueError(f"Gate {gate} has no single-qubit matrix")


def _indices(size: int) -> NDArray[np.int64]:
    return np.arange(size, dtype=np.int64)


def apply_single_qubit(
    vector: StateVector, target: int, matrix: NDArray[np.complex128]
) -> None:
    step = 1 << target
    index = _indices(len(vector))
    i = index[(index & step) == 0]
    j = i | step

    a = vector[i].copy()
    b = vector[j].copy()
    vector[i] = matrix[0, 0] * a + matrix[0, 1] * b
    vector[j] = matrix[1, 0] * a + matrix[1, 1] * b


def apply_cnot(vector: StateVector, control: int, target: int) -> None:
    control_mask = 1 << control
    target_mask = 1 << target
    index = _indices(len(vector))
    i = index[((index & control_mask) != 0) & ((index & target_mask) == 0)]
    j = i | target_mask

    vector[i], vector[j] = vector[j].copy(), vector[i].copy()


def check_qubits(gate: Gate, qubits: Sequence[int], num_qubits: int) -> None:
    """
    :raises InvalidQubitIndex: On wrong arity, out-of-range or repeated qubits.
    """

    if (
        len(qubits) != gate.arity
        or any(q < 0 or q >= num_qubits for q in qubits)
        or len(set(qubits)) != len(qubits)
    ):
        raise InvalidQubitIndex(gate.value, qubits, num_qubits)


def apply(
    vector: StateVector,
    num_qubits: int,
    gate: Gate,
    qubits: Sequence[int],
    angle: float | None = None,
) -> None:
    """Apply ``gate`` to ``qubits`` of ``vector`` in place."""

    check_qubits(gate, qubits, num_qubits)
    if gate is Gate.CNOT:
        apply_cnot(vector, qubits[0], qubits[1])
    else:
        apply_single_qubit(vector, qubits[0], gate_matrix(gate, angle))
