from typing import Any

from hybridflow.model.WorkflowRequest import WorkflowRequest
from hybridflow.processing.validation import ValidationReport, WorkflowValidator


def validate(
    nodes: list[dict[str, Any]], edges: list[tuple[str, str]], max_qubits: int = 16
) -> ValidationReport:
    request = WorkflowRequest.model_validate(
        {
            "nodes": nodes,
            "edges": [{"source": s, "target": t} for s, t in edges],
        }
    )
    return WorkflowValidator(request, max_qubits).validate()


INPUT = {"id": "in", "type": "input", "config": {"dataset": "xor"}}
OUTPUT = {"id": "out", "type": "output"}


def messages(report: ValidationReport) -> list[str]:
    return [issue.message for issue in [*report.errors, *report.warnings]]


def test_valid_workflow() -> None:
    report = validate(
        [INPUT, {"id": "ml", "type": "ml"}, OUTPUT], [("in", "ml"), ("ml", "out")]
    )

    assert report.isValid
    assert report.errors == []
    assert report.warnings == []


def test_empty_workflow() -> None:
    report = validate([], [])

    assert not report.isValid
    assert messages(report) == [
        "Workflow is empty",
        "No input node found",
        "No output node found",
    ]


def test_cycle() -> None:
    report = validate(
        [INPUT, {"id": "pre", "type": "preprocess"}, OUTPUT],
        [("in", "pre"), ("pre", "out"), ("out", "pre")],
    )

    assert not report.isValid
    assert "Circular dependency" in report.errors[0].message


def test_unknown_edge_target() -> None:
    report = validate([INPUT, OUTPUT], [("in", "missing")])

    assert not report.isValid
    assert "missing" in report.errors[0].message


def test_unconnected_node() -> None:
    report = validate([INPUT, {"id": "ml", "type": "ml"}, OUTPUT], [("in", "out")])

    assert not report.isValid
    assert [issue.nodeId for issue in report.errors] == ["ml"]


def test_no_path_to_output() -> None:
    report = validate(
        [INPUT, {"id": "pre", "type": "preprocess"}, OUTPUT],
        [("in", "pre")],
    )

    assert not report.isValid
    assert "out" in [issue.nodeId for issue in report.errors]
    assert "No path from an input node to an output node" in messages(report)


def test_configuration_warnings() -> None:
    report = validate(
        [
            INPUT,
            {"id": "pre", "type": "preprocess", "config": {"trainSplit": 99}},
            {
                "id": "ml",
                "type": "ml",
                "config": {"epochs": 5000, "learningRate": 0.5},
            },
            OUTPUT,
        ],
        [("in", "pre"), ("pre", "ml"), ("ml", "out")],
    )

    assert report.isValid
    assert [issue.nodeId for issue in report.warnings] == ["pre", "ml", "ml"]


def test_quantum_checks() -> None:
    report = validate(
        [
            INPUT,
            {
                "id": "q",
                "type": "quantum",
                "config": {
                    "numQubits": 2,
                    "circuit": [
                        {"gate": "cnot", "qubits": [0]},
                        {"gate": "H", "qubits": [3]},
                    ],
                },
            },
            OUTPUT,
        ],
        [("in", "q"), ("q", "out")],
    )

    assert not report.isValid
    assert len(report.errors) == 1
    assert "CNOT" in report.errors[0].message
    assert len(report.warnings) == 1
    assert report.warnings[0].nodeId == "q"


def test_qubit_limits() -> None:
    quantum = {"id": "q", "type": "quantum", "config": {"numQubits": 12}}
    edges = [("in", "q"), ("q", "out")]

    slow = validate([INPUT, quantum, OUTPUT], edges)
    too_large = validate([INPUT, quantum, OUTPUT], edges, max_qubits=8)

    assert slow.isValid
    assert slow.warnings[0].message == "High qubit count: 12"
    assert not too_large.isValid
    assert too_large.errors[0].nodeId == "q"
