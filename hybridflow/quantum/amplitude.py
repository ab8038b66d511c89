"""Complex amplitude value type."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class ComplexAmplitude:
    """A single complex amplitude of a state vector.

    :param real: Real part.
    :param imag: Imaginary part.
    """

    real: float = 0.0
    imag: float = 0.0

    @staticmethod
    def from_complex(value: complex) -> ComplexAmplitude:
        return ComplexAmplitude(float(value.real), float(value.imag))

    def __complex__(self) -> complex:
        return complex(self.real, self.imag)

    def __add__(self, other: ComplexAmplitude) -> ComplexAmplitude:
        return ComplexAmplitude(self.real + other.real, self.imag + other.imag)

    def __mul__(self, other: ComplexAmplitude) -> ComplexAmplitude:
        return ComplexAmplitude(
            self.real * other.real - self.imag * other.imag,
            self.real * other.imag + self.imag * other.real,
        )

    def scale(self, factor: float) -> ComplexAmplitude:
        return ComplexAmplitude(self.real * factor, self.imag * factor)

    def conjugate(self) -> ComplexAmplitude:
        return ComplexAmplitude(self.real, -self.imag)

    def magnitude(self) -> float:
        return math.hypot(self.real, self.imag)

    def probability(self) -> float:
        """Squared magnitude."""
        return self.real * self.real + self.imag * self.imag

    def phase(self) -> float:
        return math.atan2(self.imag, self.real)

    def is_close(self, other: ComplexAmplitude, tolerance: float = 1e-9) -> bool:
        return (
            abs(self.real - other.real) <= tolerance
            and abs(self.imag - other.imag) <= tolerance
        )

    def __str__(self) -> str:
        if self.imag >= 0:
            return f"{self.real:.3f} + {self.imag:.3f}i"
        return f"{self.real:.3f} - {abs(self.imag):.3f}i"
