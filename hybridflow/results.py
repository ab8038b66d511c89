"""
Turn node outputs into the :class:`~hybridflow.model.AggregatedResult.AggregatedResult` shown by the editor.

All functions are pure. ``rawData`` only contains plain JSON types.
"""

from collections.abc import Sequence
from typing import Any

from hybridflow.data.dataset import Dataset, concatenate
from hybridflow.model.AggregatedResult import AggregatedResult
from hybridflow.model.exceptions import ProblemDetails
from hybridflow.outputs import (
    ClusteringOutput,
    NodeOutput,
    QuantumOutput,
    TrainingOutput,
    as_dataset,
)
from hybridflow.quantum.metrics import (
    bloch_coordinates,
    concurrence,
    state_visualization,
)

VISUALIZED_STATES = 10


def format_percentage(value: float | None) -> str:
    """Format a ratio as percentage with two decimals, ``N/A`` for None."""

    if value is None:
        return "N/A"
    return f"{value * 100:.2f}%"


def process_ml(output: TrainingOutput) -> AggregatedResult:
    metrics = output.metrics
    summary: dict[str, str | int | float] = {
        "modelType": output.model_type,
        "accuracy": format_percentage(metrics.get("accuracy")),
        "precision": format_percentage(metrics.get("precision")),
        "recall": format_percentage(metrics.get("recall")),
        "f1Score": format_percentage(metrics.get("f1Score")),
        "totalSamples": metrics.get("totalSamples", len(output.predictions)),
        "correctPredictions": metrics.get("correctPredictions", 0),
    }
    if output.test_metrics is not None:
        summary["testAccuracy"] = format_percentage(output.test_metrics["accuracy"])

    quantum_transformed = bool(output.dataset.metadata.get("quantumTransformed"))
    if quantum_transformed:
        summary["encodingMethod"] = str(output.dataset.metadata.get("encodingMethod"))

    return AggregatedResult(
        type="ml",
        summary=summary,
        rawData={
            "modelType": output.model_type,
            "predictions": list(output.predictions),
            "metrics": metrics,
            "confusionMatrix": metrics.get("confusionMatrix"),
            "trainingHistory": [stats.to_json() for stats in output.history],
            "testPredictions": output.test_predictions,
            "testMetrics": output.test_metrics,
            "quantumTransformed": quantum_transformed,
            "encodingMethod": output.dataset.metadata.get("encodingMethod"),
        },
    )


def process_quantum(output: QuantumOutput) -> AggregatedResult:
    run = output.last_run
    state = run.state
    total_shots = sum(r.measurements.shots for r in output.runs)

    raw: dict[str, Any] = {
        "numQubits": state.num_qubits,
        "shots": total_shots,
        "runs": len(output.runs),
        "measurements": output.counts,
        "fidelity": output.fidelity,
        "statePurity": run.state_purity,
        "entropy": output.entropy,
        "encodingMethod": run.encoding_method,
        "hadInputData": run.had_input_data,
        "samplingFidelity": output.sampling_fidelity,
        "circuitOverlap": run.circuit_overlap,
        "circuitDistance": run.circuit_distance,
        "circuit": [op.model_dump() for op in run.circuit],
        "stateVector": [[float(a.real), float(a.imag)] for a in state.vector],
        "stateVisualization": state_visualization(state, VISUALIZED_STATES),
        "quantumFeatures": output.dataset.features.tolist(),
    }
    if state.num_qubits == 1:
        raw["blochSphere"] = dict(zip("xyz", bloch_coordinates(state), strict=True))
    if state.num_qubits == 2:
        raw["concurrence"] = concurrence(state)
        raw["entangled"] = run.entangled

    return AggregatedResult(
        type="quantum",
        summary={
            "numQubits": state.num_qubits,
            "gatesApplied": run.gates_applied,
            "fidelity": format_percentage(output.fidelity),
            "entropy": round(output.entropy, 4),
            "totalShots": total_shots,
        },
        rawData=raw,
    )


def process_clustering(output: ClusteringOutput) -> AggregatedResult:
    model = output.model
    sizes = model.cluster_sizes
    total = len(model.assignments)

    return AggregatedResult(
        type="clustering",
        summary={
            "numClusters": model.k,
            "iterations": model.iterations,
            "totalPoints": total,
            "inertia": round(model.inertia, 4),
        },
        rawData={
            "centroids": model.centroids.tolist(),
            "assignments": model.assignments.tolist(),
            "converged": model.converged,
            "inertia": model.inertia,
            "clusters": [
                {
                    "id": i,
                    "centroid": model.centroids[i].tolist(),
                    "count": sizes[i],
                    "percentage": format_percentage(sizes[i] / total),
                }
                for i in range(model.k)
            ],
        },
    )


def process_hybrid(ml: TrainingOutput, quantum: QuantumOutput) -> AggregatedResult:
    """
    Result of an output node fed by both a classifier and a quantum node.
    Reported as an ``ml`` result extended by the quantum headline numbers.
    """

    ml_result = process_ml(ml)
    quantum_result = process_quantum(quantum)
    total_samples = ml.metrics.get("totalSamples", len(ml.predictions))

    return AggregatedResult(
        type="ml",
        summary={
            **ml_result.summary,
            "workflow": "ML + Quantum",
            "mlAccuracy": format_percentage(ml.metrics.get("accuracy")),
            "quantumFidelity": format_percentage(quantum.fidelity),
            "totalOperations": total_samples + quantum.last_run.gates_applied,
        },
        rawData={
            **ml_result.rawData,
            "mlResults": ml_result.rawData,
            "quantumResults": quantum_result.rawData,
        },
    )


def info_result(
    message: str = "Workflow executed successfully", data: Dataset | None = None
) -> AggregatedResult:
    summary: dict[str, str | int | float] = {}
    raw: dict[str, Any] = {}
    if data is not None:
        summary = {"rows": data.num_rows, "columns": data.num_columns}
        raw = data.to_payload().model_dump(mode="json")
    return AggregatedResult(type="info", summary=summary, rawData=raw, message=message)


def error_result(ex: BaseException, is_debug: bool = False) -> AggregatedResult:
    """
    Error result of a failed run.
    Details of errors not caused by the workflow are only included in debug mode.
    """

    problem = ProblemDetails.from_exception(ex, is_debug)
    return AggregatedResult(
        type="error",
        summary={"error": problem.title},
        rawData={
            "title": problem.title,
            "status": problem.status,
            "nodeId": problem.instance,
            "clientError": problem.status < 500,
        },
        message=problem.detail,
    )


def process_workflow_result(output: NodeOutput) -> AggregatedResult:
    """Detect the kind of an output and aggregate it accordingly."""

    match output:
        case TrainingOutput():
            return process_ml(output)
        case QuantumOutput():
            return process_quantum(output)
        case ClusteringOutput():
            return process_clustering(output)
        case AggregatedResult():
            return output
        case Dataset():
            return info_result(data=output)


def aggregate(outputs: Sequence[NodeOutput]) -> AggregatedResult:
    """
    Result of an output node from the outputs of its predecessors.
    """

    if not outputs:
        return info_result("Output node received no data")
    if len(outputs) == 1:
        return process_workflow_result(outputs[0])

    trainings = [o for o in outputs if isinstance(o, TrainingOutput)]
    quantums = [o for o in outputs if isinstance(o, QuantumOutput)]
    if len(trainings) == 1 and len(quantums) == 1 and len(outputs) == 2:
        return process_hybrid(trainings[0], quantums[0])

    return info_result(data=concatenate([as_dataset(o) for o in outputs]))
