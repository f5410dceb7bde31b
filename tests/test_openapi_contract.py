import json
from pathlib import Path

from schoolstock.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_error_envelope_is_documented_for_ledger_writes():
    responses = app.openapi()["paths"]["/stock-movements"]["post"]["responses"]
    assert {"400", "404", "422", "500"} <= set(responses)
    example = responses["400"]["content"]["application/json"]["example"]
    assert example["error"]["code"] == "insufficient_stock"
