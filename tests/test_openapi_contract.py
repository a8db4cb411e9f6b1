import json
from pathlib import Path

from pharmdesk.main import app


def test_openapi_paths_snapshot():
    snapshot_path = Path(__file__).parent / "snapshots" / "openapi_paths_snapshot.json"
    expected_paths = json.loads(snapshot_path.read_text(encoding="utf-8"))
    actual_paths = sorted(app.openapi()["paths"].keys())
    assert actual_paths == expected_paths


def test_sale_errors_are_documented():
    responses = app.openapi()["paths"]["/sales"]["post"]["responses"]
    assert {"201", "400", "401", "422", "503"} <= set(responses)


def test_sale_and_error_shapes_are_documented():
    schemas = app.openapi()["components"]["schemas"]
    sale = next(value for key, value in schemas.items() if key.startswith("SaleOut"))
    assert {"id", "lines", "totalAmount", "customerName", "createdBy", "createdAt"} <= set(sale["properties"])
    assert {"message", "error"} <= set(schemas["ErrorOut"]["properties"])
