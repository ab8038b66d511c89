import math

import pytest

from hybridflow.quantum import QuantumEngine
from hybridflow.quantum.amplitude import ComplexAmplitude


def test_arithmetic() -> None:
    a = ComplexAmplitude(1, 2)
    b = ComplexAmplitude(3, -1)

    assert a + b == ComplexAmplitude(4, 1)
    assert a * b == ComplexAmplitude(5, 5)
    assert a.scale(0.5) == ComplexAmplitude(0.5, 1)
    assert a.conjugate() == ComplexAmplitude(1, -2)


def test_magnitude_and_phase() -> None:
    amplitude = ComplexAmplitude(3, 4)

    assert amplitude.magnitude() == 5
    assert amplitude.probability() == 25
    assert ComplexAmplitude(0, 1).phase() == pytest.approx(math.pi / 2)


def test_conversion() -> None:
    amplitude = ComplexAmplitude.from_complex(0.5 - 0.25j)

    assert complex(amplitude) == 0.5 - 0.25j
    assert amplitude.is_close(ComplexAmplitude(0.5 + 1e-12, -0.25))
    assert not amplitude.is_close(ComplexAmplitude(0.5, 0.25))


def test_str() -> None:
    assert str(ComplexAmplitude(0.5, 0.25)) == "0.500 + 0.250i"
    assert str(ComplexAmplitude(0.5, -0.25)) == "0.500 - 0.250i"


def test_state_amplitudes() -> None:
    engine = QuantumEngine(max_qubits=4)
    state = engine.create_state(1)
    engine.apply_gate(state, "H", [0])

    amplitudes = state.amplitudes

    assert [a.probability() for a in amplitudes] == pytest.approx([0.5, 0.5])
    assert amplitudes[1].is_close(ComplexAmplitude(1 / math.sqrt(2), 0))
