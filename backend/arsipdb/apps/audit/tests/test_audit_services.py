from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError

from arsipdb.apps.accounts import models as account_models
from arsipdb.apps.audit import models as audit_models
from arsipdb.apps.audit import services as audit_services


def test_log_event_writes_record(db_session):
    user = account_models.User(
        username="auditor",
        name="Auditor",
        email="auditor@example.com",
        hashed_password="hash",
    )
    db_session.add(user)
    db_session.commit()

    event = audit_services.log_event(
        db_session,
        actor_user_id=user.id,
        entity_type="letter",
        entity_id="letter-1",
        action="create",
        after={"status": "RECEIVED"},
        metadata={"module": "correspondence"},
    )

    db_session.commit()
    assert event is not None
    assert event.entity_type == "letter"
    assert event.metadata_json == {"module": "correspondence"}

    events = audit_services.list_audit_events(db_session, entity_type="letter", entity_id="letter-1")
    assert [e.id for e in events] == [event.id]
    assert audit_services.list_audit_events(db_session, entity_type="archive") == []


def test_snapshot_is_json_safe():
    user = account_models.User(
        username="auditor",
        name="Auditor",
        email="auditor@example.com",
        hashed_password="hash",
        role=account_models.UserRole.ADMINISTRATOR,
    )
    data = audit_services.snapshot(user, ("username", "role", "missing"))
    assert data == {"username": "auditor", "role": "ADMINISTRATOR", "missing": None}


def test_update_events_record_changed_fields_and_history(db_session):
    user = account_models.User(
        username="arsiparis",
        name="Arsiparis",
        email="arsiparis@example.com",
        hashed_password="hash",
    )
    db_session.add(user)
    db_session.commit()

    audit_services.log_event(
        db_session,
        actor_user_id=user.id,
        entity_type="archive",
        entity_id="archive-1",
        action="create",
        after={"title": "Berkas", "status": "ACTIVE"},
    )
    update = audit_services.log_event(
        db_session,
        actor_user_id=user.id,
        entity_type="archive",
        entity_id="archive-1",
        action="update",
        before={"title": "Berkas", "status": "ACTIVE"},
        after={"title": "Berkas", "status": "UNDER_REVIEW"},
    )
    db_session.commit()

    assert update.metadata_json == {"changed": ["status"]}
    history = audit_services.entity_history(db_session, "archive", "archive-1")
    assert [e.action for e in history] == ["create", "update"]
    assert history[0].actor_name == "Arsiparis"
    assert [e.action for e in audit_services.list_audit_events(db_session, action="update")] == ["update"]


def test_audit_routes_require_admin():
    from arsipdb.apps.audit.router import router
    from arsipdb.security import require_admin

    for route in router.routes:
        assert require_admin in [dep.call for dep in route.dependant.dependencies]


def test_failed_optional_event_keeps_the_change(db_session, monkeypatch):
    user = account_models.User(
        username="arsiparis",
        name="Arsiparis",
        email="arsiparis@example.com",
        hashed_password="hash",
    )
    db_session.add(user)
    db_session.commit()
    first = audit_services.log_event(
        db_session,
        actor_user_id=user.id,
        entity_type="letter",
        entity_id="letter-1",
        action="create",
    )
    db_session.commit()
    taken_id = first.id
    db_session.expunge(first)

    def clashing_event(db, data):
        db.add(audit_models.AuditEvent(id=taken_id, entity_type="letter", entity_id="letter-1", action="update"))
        db.flush()

    monkeypatch.setattr(audit_services, "record_event", clashing_event)

    db_session.add(
        account_models.User(
            username="staf",
            name="Staf",
            email="staf@example.com",
            hashed_password="hash",
        )
    )
    assert (
        audit_services.log_event(
            db_session,
            actor_user_id=user.id,
            entity_type="letter",
            entity_id="letter-1",
            action="update",
        )
        is None
    )
    db_session.commit()

    assert db_session.query(account_models.User).count() == 2
    assert db_session.query(audit_models.AuditEvent).count() == 1

    with pytest.raises(IntegrityError):
        audit_services.log_event(
            db_session,
            actor_user_id=user.id,
            entity_type="letter",
            entity_id="letter-1",
            action="delete",
            critical=True,
        )
    db_session.rollback()
