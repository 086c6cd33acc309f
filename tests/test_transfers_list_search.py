import uuid
from datetime import date, datetime, timedelta

from app.escolastica.core.error_catalog import ErrorCatalog
from tests.transfer_helpers import (
    add_membership,
    auth_headers,
    create_branch,
    create_pending_transfer,
    create_student,
    login,
    transfer_world,
)


def _two_way_world(db_session):
    world = transfer_world(db_session)
    incoming_student = create_student(
        db_session,
        document_number="80112233",
        first_name="Luis",
        paternal_last_name="Mamani",
        branch=world["south"],
    )
    outgoing = create_pending_transfer(
        db_session,
        student=world["student"],
        source=world["north"],
        target=world["south"],
        created_by=world["north_coordinator"],
        created_at=datetime.utcnow() - timedelta(hours=1),
    )
    incoming = create_pending_transfer(
        db_session,
        student=incoming_student,
        source=world["south"],
        target=world["north"],
        created_by=world["north_coordinator"],
        transfer_type="incoming",
    )
    return world, outgoing, incoming


def test_list_filters_by_direction_and_status(client, db_session):
    world, outgoing, incoming = _two_way_world(db_session)
    token = login(client, "coord-north")
    north_id = world["north"].id

    everything = client.get(f"/transfers?branchId={north_id}", headers=auth_headers(token))
    assert everything.status_code == 200
    assert {row["id"] for row in everything.json()["data"]} == {str(outgoing.id), str(incoming.id)}

    out_only = client.get(f"/transfers?branchId={north_id}&type=outgoing", headers=auth_headers(token))
    assert [row["id"] for row in out_only.json()["data"]] == [str(outgoing.id)]

    in_only = client.get(f"/transfers?branchId={north_id}&type=incoming", headers=auth_headers(token))
    assert [row["id"] for row in in_only.json()["data"]] == [str(incoming.id)]

    assert client.put(f"/transfers/{incoming.id}/cancel", headers=auth_headers(token)).status_code == 200

    pending = client.get(f"/transfers?branchId={north_id}&status=pending", headers=auth_headers(token))
    assert [row["id"] for row in pending.json()["data"]] == [str(outgoing.id)]

    cancelled = client.get(f"/transfers?branchId={north_id}&status=cancelled", headers=auth_headers(token))
    assert [row["id"] for row in cancelled.json()["data"]] == [str(incoming.id)]


def test_list_is_newest_first_and_scoped_to_branch(client, db_session):
    world, outgoing, incoming = _two_way_world(db_session)
    west = create_branch(db_session, code="OESTE", name="Sede Oeste")
    token = login(client, "coord-north")

    rows = client.get(f"/transfers?branchId={world['north'].id}", headers=auth_headers(token)).json()["data"]
    assert [row["id"] for row in rows] == [str(incoming.id), str(outgoing.id)]

    empty = client.get(f"/transfers?branchId={west.id}", headers=auth_headers(token))
    assert empty.json() == {"data": []}


def test_list_query_validation(client, db_session):
    world = transfer_world(db_session)
    token = login(client, "coord-north")

    missing = client.get("/transfers", headers=auth_headers(token))
    assert missing.status_code == 400
    assert missing.json()["code"] == ErrorCatalog.VALIDATION_ERROR.code
    assert "branchId" in [error["field"] for error in missing.json()["details"]["errors"]]

    bad_type = client.get(f"/transfers?branchId={world['north'].id}&type=sideways", headers=auth_headers(token))
    assert bad_type.status_code == 400

    bad_status = client.get(f"/transfers?branchId={world['north'].id}&status=lost", headers=auth_headers(token))
    assert bad_status.status_code == 400


def test_transfer_detail(client, db_session):
    world, outgoing, _incoming = _two_way_world(db_session)
    token = login(client, "coord-south")

    response = client.get(f"/transfers/{outgoing.id}", headers=auth_headers(token))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == str(outgoing.id)
    assert data["sourceBranchName"] == "Sede Norte"
    assert data["targetBranchName"] == "Sede Sur"

    missing = client.get(f"/transfers/{uuid.uuid4()}", headers=auth_headers(token))
    assert missing.status_code == 404
    assert missing.json()["code"] == ErrorCatalog.TRANSFER_NOT_FOUND.code


def test_search_student_by_document_and_name(client, db_session):
    world = transfer_world(db_session)
    token = login(client, "coord-south")

    by_document = client.get("/transfers/search-student?dni=7011", headers=auth_headers(token))
    assert by_document.status_code == 200
    candidates = by_document.json()["data"]
    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate["studentId"] == str(world["student"].id)
    assert candidate["dni"] == "70112233"
    assert candidate["branchId"] == str(world["north"].id)
    assert candidate["branchName"] == "Sede Norte"
    assert candidate["branchCode"] == "NORTE"
    assert candidate["status"] == "Alta"

    by_name = client.get("/transfers/search-student?dni=QUISPE", headers=auth_headers(token))
    assert [row["studentId"] for row in by_name.json()["data"]] == [str(world["student"].id)]


def test_search_student_short_query_and_exclusions(client, db_session):
    world = transfer_world(db_session)
    former = create_student(db_session, document_number="70110000", paternal_last_name="Huaman")
    add_membership(db_session, former, world["south"], status="Baja", admission_date=date(2019, 1, 1))
    token = login(client, "coord-south")

    short = client.get("/transfers/search-student?dni=70", headers=auth_headers(token))
    assert short.status_code == 200
    assert short.json() == {"data": []}

    excluded = client.get(
        f"/transfers/search-student?dni=7011&excludeBranchId={world['north'].id}",
        headers=auth_headers(token),
    )
    assert excluded.json() == {"data": []}

    missing = client.get("/transfers/search-student", headers=auth_headers(token))
    assert missing.status_code == 400


def test_search_student_is_capped(client, db_session):
    world = transfer_world(db_session)
    for index in range(12):
        create_student(
            db_session,
            document_number=f"9900{index:04d}",
            first_name="Rosa",
            paternal_last_name=f"Condori{index:02d}",
            branch=world["north"],
        )
    token = login(client, "coord-south")

    response = client.get("/transfers/search-student?dni=9900", headers=auth_headers(token))

    assert len(response.json()["data"]) == 10
