"""
State-vector simulation of the quantum nodes.
"""

from hybridflow.quantum.simulator import (
    MeasurementResult,
    QuantumEngine,
    QuantumRunResult,
    QuantumState,
)

__all__ = ["MeasurementResult", "QuantumEngine", "QuantumRunResult", "QuantumState"]
