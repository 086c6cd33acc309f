import json
import logging
from types import SimpleNamespace

from starlette.requests import Request
from starlette.responses import Response

from app.escolastica.middleware.observability import build_request_log_payload
from tests.transfer_helpers import auth_headers, create_payload, login, transfer_world


def test_build_request_log_payload():
    scope = {
        "type": "http",
        "method": "PUT",
        "path": "/transfers/abc/accept",
        "headers": [],
        "route": SimpleNamespace(path="/transfers/{transfer_id}/accept"),
    }
    request = Request(scope)
    request.state.trace_id = "trace-1"
    request.state.user_id = "user-1"
    request.state.error_code = None
    response = Response(status_code=200)

    payload = build_request_log_payload(request=request, response=response, latency_ms=12.3456)

    assert payload["event"] == "http_request"
    assert payload["trace_id"] == "trace-1"
    assert payload["user_id"] == "user-1"
    assert payload["route"] == "/transfers/{transfer_id}/accept"
    assert payload["method"] == "PUT"
    assert payload["status_code"] == 200
    assert payload["latency_ms"] == 12.35


def _events(caplog, logger_prefix: str) -> list[dict]:
    return [
        json.loads(record.getMessage())
        for record in caplog.records
        if record.name.startswith(logger_prefix)
    ]


def test_transfer_lifecycle_is_logged(client, db_session, caplog):
    world = transfer_world(db_session)
    token = login(client, "coord-north")
    caplog.set_level(logging.INFO)

    created = client.post(
        "/transfers",
        headers={**auth_headers(token), "X-Trace-ID": "trace-create"},
        json=create_payload(world["student"], world["south"]),
    )
    transfer_id = created.json()["data"]["id"]
    client.put(f"/transfers/{transfer_id}/accept", headers=auth_headers(token))

    domain = _events(caplog, "app.escolastica.services")
    names = [event["event"] for event in domain]
    assert "transfer.created" in names
    assert "transfer.accepted" in names

    requests = _events(caplog, "escolastica.request")
    create_log = next(event for event in requests if event["trace_id"] == "trace-create")
    assert create_log["route"] == "/transfers"
    assert create_log["status_code"] == 201
    assert create_log["user_id"] == str(world["north_coordinator"].id)


def test_permission_denied_is_logged_as_warning(client, db_session, caplog):
    world = transfer_world(db_session)
    token = login(client, "coord-south")
    caplog.set_level(logging.INFO)

    response = client.post("/transfers", headers=auth_headers(token), json=create_payload(world["student"], world["south"]))

    assert response.status_code == 403
    denied = [
        record
        for record in caplog.records
        if record.name == "app.escolastica.services.authorization"
    ]
    assert denied and denied[0].levelno == logging.WARNING
    assert json.loads(denied[0].getMessage())["action"] == "create"

    requests = _events(caplog, "escolastica.request")
    assert requests[-1]["error_code"] == "PERMISSION_DENIED"
