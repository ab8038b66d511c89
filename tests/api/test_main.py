import json
from time import sleep
from typing import Any

from httpx import Response
from starlette.testclient import TestClient

POLL_INTERVAL = 0.1
MAX_ATTEMPTS = 50

QUANTUM_WORKFLOW: dict[str, Any] = {
    "metadata": {"name": "Quantum XOR", "description": "basis encoded", "seed": 3},
    "nodes": [
        {"id": "in", "type": "input", "config": {"dataset": "xor"}},
        {
            "id": "q",
            "type": "quantum",
            "config": {"numQubits": 2, "shots": 10, "encodingMethod": "basis"},
        },
        {"id": "out", "type": "output"},
    ],
    "edges": [{"source": "in", "target": "q"}, {"source": "q", "target": "out"}],
}

CYCLIC_WORKFLOW: dict[str, Any] = {
    "nodes": [
        {"id": "a", "type": "preprocess"},
        {"id": "b", "type": "preprocess"},
    ],
    "edges": [{"source": "a", "target": "b"}, {"source": "b", "target": "a"}],
}


def run(client: TestClient, workflow: dict[str, Any]) -> tuple[str, Response]:
    response = client.post("/run", json=workflow, follow_redirects=False)
    assert response.status_code == 303

    uuid = response.headers["location"].rsplit("/", 1)[-1]
    for _ in range(MAX_ATTEMPTS):
        response = client.get(f"/status/{uuid}")
        if response.json()["status"] != "in_progress":
            return uuid, response
        sleep(POLL_INTERVAL)

    raise AssertionError(f"Timeout while waiting for run {uuid}")


def test_run(client: TestClient) -> None:
    uuid, status = run(client, QUANTUM_WORKFLOW)

    assert status.json()["status"] == "completed"
    assert status.json()["progress"]["percentage"] == 100
    assert status.json()["result"].endswith(f"/results/{uuid}")
    assert status.json()["resultType"] == "quantum"
    assert status.json()["progress"]["executedNodes"] == 3
    assert status.json()["name"] == "Quantum XOR"

    result = client.get(f"/results/{uuid}")
    assert result.status_code == 200
    assert result.json()["type"] == "quantum"
    assert result.json()["summary"]["totalShots"] == 40
    assert 'rel="request"' in result.headers["link"]

    request = client.get(f"/request/{uuid}")
    assert request.status_code == 200
    assert request.json()["metadata"]["name"] == "Quantum XOR"


def test_failed_run(client: TestClient) -> None:
    uuid, status = run(client, CYCLIC_WORKFLOW)

    assert status.json()["status"] == "failed"
    assert status.json()["problem"]["title"] == "CycleDetected"
    assert status.json()["result"].endswith(f"/results/{uuid}")
    assert status.json()["resultType"] == "error"

    result = client.get(f"/results/{uuid}")
    assert result.status_code == 200
    assert result.json()["type"] == "error"
    assert result.json()["summary"]["error"] == "CycleDetected"
    assert result.json()["rawData"]["clientError"]


def test_results_overview(client: TestClient) -> None:
    uuid, _ = run(client, QUANTUM_WORKFLOW)

    overview = client.get("/results", params={"status": "completed"}).json()
    entry = next(item for item in overview if item["uuid"] == uuid)

    assert entry["name"] == "Quantum XOR"
    assert entry["description"] == "basis encoded"
    assert entry["links"]["result"].endswith(f"/results/{uuid}")
    assert all(item["status"] == "completed" for item in overview)


def test_unknown_uuid(client: TestClient) -> None:
    uuid = "00000000-0000-0000-0000-000000000000"

    assert client.get(f"/status/{uuid}").status_code == 404
    assert client.get(f"/results/{uuid}").status_code == 404
    assert client.get(f"/request/{uuid}").status_code == 404


def test_invalid_request(client: TestClient) -> None:
    response = client.post("/run", json={"nodes": [{"id": "x", "type": "unknown"}]})
    assert response.status_code == 422


def test_debug_run(client: TestClient) -> None:
    response = client.post("/debug/run", json=QUANTUM_WORKFLOW)

    assert response.status_code == 200
    assert response.json()["type"] == "quantum"


def test_debug_run_reports_errors_as_result(client: TestClient) -> None:
    response = client.post("/debug/run", json=CYCLIC_WORKFLOW)

    assert response.status_code == 200
    assert response.json()["type"] == "error"
    assert response.json()["summary"]["error"] == "CycleDetected"


def test_validate(client: TestClient) -> None:
    valid = client.post("/validate", json=QUANTUM_WORKFLOW).json()
    invalid = client.post("/validate", json=CYCLIC_WORKFLOW).json()

    assert valid["isValid"]
    assert not invalid["isValid"]
    assert invalid["errors"]


def test_datasets(client: TestClient) -> None:
    datasets = client.get("/datasets").json()
    assert "xor" in [dataset["id"] for dataset in datasets]


def test_csv_upload(client: TestClient) -> None:
    response = client.post(
        "/datasets/csv",
        files={"file": ("points.csv", b"a,b,label\n1,2,0\n3,4,1\n", "text/csv")},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["features"] == [[1.0, 2.0], [3.0, 4.0]]
    assert body["labels"] == [0, 1]
    assert body["featureNames"] == ["a", "b"]
    assert body["name"] == "points.csv"


def test_csv_upload_without_headers(client: TestClient) -> None:
    response = client.post(
        "/datasets/csv",
        files={"file": ("points.csv", b"0,1,2\n1,3,4\n", "text/csv")},
        data={"hasHeaders": "false", "labelColumn": "first"},
    )

    assert response.status_code == 200
    assert response.json()["labels"] == [0, 1]


def test_invalid_csv_upload(client: TestClient) -> None:
    response = client.post(
        "/datasets/csv",
        files={"file": ("bad.csv", b"a,b\n1,x\n", "text/csv")},
    )

    assert response.status_code == 400
    assert response.headers["content-type"] == "application/problem+json"
    assert json.loads(response.text)["title"] == "InvalidDataset"
