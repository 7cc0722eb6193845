from datetime import date, datetime, time

from clinic_agenda import models

from conftest import (
    ADMIN_TOKEN,
    headers,
    make_appointment,
    make_entry,
    make_patient,
    make_professional,
    make_tenant,
)


def _entry(db, clinic, **kwargs):
    return make_entry(db, clinic["tenant"], clinic["patient"], clinic["professional"], clinic["procedure"], **kwargs)


# ====== Alta y listado ======
def test_create_entry_defaults_to_waiting(client, clinic):
    t = clinic["tenant"]
    r = client.post("/api/waiting-list", headers=headers(t), json={
        "patient_id": clinic["patient"].id,
        "dentist_id": clinic["professional"].id,
        "procedure_id": clinic["procedure"].id,
        "preferred_date": "2030-01-07",
        "priority": 3,
    })
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "waiting"
    assert body["priority"] == 3
    assert body["professional_id"] == clinic["professional"].id
    assert body["patient_name"] == "Ana Souza"
    assert body["procedure_name"] == "Limpeza de pele"


def test_create_entry_rejects_out_of_range_priority(client, clinic):
    r = client.post("/api/waiting-list", headers=headers(clinic["tenant"]), json={
        "patient_id": clinic["patient"].id, "priority": 6,
    })
    assert r.status_code == 422


def test_create_entry_rejects_patient_from_other_clinic(client, db, clinic):
    other = make_tenant(db, name="Outra")
    stranger = make_patient(db, other, name="Zé")
    r = client.post("/api/waiting-list", headers=headers(clinic["tenant"]), json={"patient_id": stranger.id})
    assert r.status_code == 404


def test_list_is_sorted_by_priority_then_age(client, db, clinic):
    old_low = _entry(db, clinic, priority=2, created_at=datetime(2029, 12, 1, 9, 0))
    new_high = _entry(db, clinic, priority=5, created_at=datetime(2029, 12, 20, 9, 0))
    old_high = _entry(db, clinic, priority=5, created_at=datetime(2029, 12, 2, 9, 0))
    r = client.get("/api/waiting-list", headers=headers(clinic["tenant"]))
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 3
    assert [e["id"] for e in body["results"]] == [old_high.id, new_high.id, old_low.id]


def test_list_filters(client, db, clinic):
    _entry(db, clinic, priority=2)
    cancelled = _entry(db, clinic, priority=2, status=models.WaitingListStatus.cancelled)
    r = client.get("/api/waiting-list", headers=headers(clinic["tenant"]), params={"status": "cancelled"})
    assert [e["id"] for e in r.json()["results"]] == [cancelled.id]


def test_tenant_isolation(client, db, clinic):
    other = make_tenant(db, name="Outra")
    foreign = make_entry(db, other, make_patient(db, other, name="Zé"))
    h = headers(clinic["tenant"])
    assert client.get(f"/api/waiting-list/{foreign.id}", headers=h).status_code == 404
    assert client.get("/api/waiting-list", headers=h).json()["total"] == 0
    assert client.patch(f"/api/waiting-list/{foreign.id}/status", headers=h,
                        json={"status": "cancelled"}).status_code == 404


# ====== Estados ======
def test_status_transitions(client, db, clinic):
    e = _entry(db, clinic)
    h = headers(clinic["tenant"])
    url = f"/api/waiting-list/{e.id}/status"
    assert client.patch(url, headers=h, json={"status": "contacted"}).json()["status"] == "contacted"
    assert client.patch(url, headers=h, json={"status": "contacted"}).status_code == 200
    assert client.patch(url, headers=h, json={"status": "cancelled"}).json()["status"] == "cancelled"
    r = client.patch(url, headers=h, json={"status": "waiting"})
    assert r.status_code == 409
    assert "Transição inválida" in r.json()["detail"]


def test_update_routes_status_through_state_machine(client, db, clinic):
    e = _entry(db, clinic, status=models.WaitingListStatus.scheduled)
    r = client.put(f"/api/waiting-list/{e.id}", headers=headers(clinic["tenant"]),
                   json={"status": "waiting", "notes": "tentar de novo"})
    assert r.status_code == 409
    db.expire_all()
    assert db.get(models.WaitingListEntry, e.id).notes is None


def test_update_null_on_required_fields_keeps_values(client, db, clinic):
    e = _entry(db, clinic, priority=4)
    r = client.put(f"/api/waiting-list/{e.id}", headers=headers(clinic["tenant"]),
                   json={"priority": None, "patient_id": None, "status": None, "notes": "ligar à tarde"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["priority"] == 4
    assert body["patient_id"] == clinic["patient"].id
    assert body["status"] == "waiting"
    assert body["notes"] == "ligar à tarde"


def test_update_professional_null_fields_keep_values(client, clinic):
    prof = clinic["professional"]
    r = client.put(f"/api/professionals/{prof.id}", headers=headers(clinic["tenant"]),
                   json={"name": None, "is_active": None})
    assert r.status_code == 200, r.text
    assert r.json()["name"] == "Dra. Carla Lima"
    assert r.json()["is_active"] is True


def test_contact_by_whatsapp_logs_and_marks_contacted(client, db, clinic):
    e = _entry(db, clinic)
    r = client.post(f"/api/waiting-list/{e.id}/contact", headers=headers(clinic["tenant"]),
                    json={"method": "whatsapp"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "contacted"
    assert body["delivery"] == "dry_run"
    db.expire_all()
    logs = db.query(models.ContactLog).filter(models.ContactLog.waiting_list_id == e.id).all()
    assert len(logs) == 1
    assert logs[0].method == models.ContactMethod.whatsapp
    assert logs[0].status == "dry_run"


def test_contact_by_phone_is_only_logged(client, db, clinic):
    e = _entry(db, clinic)
    r = client.post(f"/api/waiting-list/{e.id}/contact", headers=headers(clinic["tenant"]),
                    json={"method": "phone"})
    assert r.json()["delivery"] == "logged"


def test_contact_cancelled_entry_is_rejected(client, db, clinic):
    e = _entry(db, clinic, status=models.WaitingListStatus.cancelled)
    r = client.post(f"/api/waiting-list/{e.id}/contact", headers=headers(clinic["tenant"]),
                    json={"method": "email"})
    assert r.status_code == 409
    db.expire_all()
    assert db.query(models.ContactLog).count() == 0


# ====== Prioridad ======
def test_priority_set_and_clamped_steps(client, db, clinic):
    e = _entry(db, clinic, priority=4)
    h = headers(clinic["tenant"])
    assert client.put(f"/api/waiting-list/{e.id}/priority", headers=h, json={"priority": 7}).status_code == 422
    assert client.post(f"/api/waiting-list/{e.id}/priority/increment", headers=h).json()["priority"] == 5
    assert client.post(f"/api/waiting-list/{e.id}/priority/increment", headers=h).json()["priority"] == 5
    assert client.put(f"/api/waiting-list/{e.id}/priority", headers=h, json={"priority": 1}).json()["priority"] == 1
    assert client.post(f"/api/waiting-list/{e.id}/priority/decrement", headers=h).json()["priority"] == 1


def test_bulk_priority_is_all_or_nothing(client, db, clinic):
    a = _entry(db, clinic, priority=1)
    b = _entry(db, clinic, priority=2)
    other = make_tenant(db, name="Outra")
    foreign = make_entry(db, other, make_patient(db, other, name="Zé"), priority=1)
    h = headers(clinic["tenant"])

    r = client.post("/api/waiting-list/bulk-priority", headers=h,
                    json={"entry_ids": [a.id, b.id, foreign.id], "priority": 5})
    assert r.status_code == 404
    db.expire_all()
    assert [db.get(models.WaitingListEntry, i).priority for i in (a.id, b.id, foreign.id)] == [1, 2, 1]

    r = client.post("/api/waiting-list/bulk-priority", headers=h, json={"entry_ids": [a.id, b.id], "priority": 4})
    assert r.status_code == 200
    assert r.json()["updated"] == 2
    db.expire_all()
    assert {db.get(models.WaitingListEntry, i).priority for i in (a.id, b.id)} == {4}


def test_stats(client, db, clinic):
    _entry(db, clinic, priority=5)
    _entry(db, clinic, priority=5, status=models.WaitingListStatus.contacted)
    _entry(db, clinic, priority=1, status=models.WaitingListStatus.cancelled)
    body = client.get("/api/waiting-list/stats", headers=headers(clinic["tenant"])).json()
    assert body["total"] == 3
    assert body["by_status"]["cancelled"] == 1
    by_priority = {s["priority"]: s["count"] for s in body["by_priority"]}
    assert by_priority[5] == 2
    assert by_priority[1] == 0


# ====== Slots y agendamiento ======
def test_available_slots_endpoint(client, clinic):
    r = client.get("/api/waiting-list/available-slots", headers=headers(clinic["tenant"]),
                   params={"professional_id": clinic["professional"].id, "days_ahead": 1})
    assert r.status_code == 200
    slots = r.json()["slots"]
    assert [s["startTime"] for s in slots][:2] == ["08:00", "09:00"]
    assert set(slots[0]) == {"date", "startTime", "endTime", "professionalId", "professionalName"}


def test_suggestions_split_preferred_and_alternatives(client, db, clinic):
    e = _entry(db, clinic, preferred_date=date(2030, 1, 7),
               preferred_time_start=time(14, 0), preferred_time_end=time(16, 0))
    body = client.get(f"/api/waiting-list/{e.id}/suggestions", headers=headers(clinic["tenant"])).json()
    assert [s["startTime"] for s in body["preferred"]] == ["14:00", "15:00"]
    assert body["alternatives"]
    assert all(s not in body["preferred"] for s in body["alternatives"])


def _schedule_body(clinic, start="2030-01-07T10:00:00", end="2030-01-07T11:00:00"):
    return {
        "patient_id": clinic["patient"].id,
        "professional_id": clinic["professional"].id,
        "title": "Limpeza de pele",
        "start_datetime": start,
        "end_datetime": end,
    }


def test_schedule_from_waiting_list(client, db, clinic):
    e = _entry(db, clinic)
    r = client.post(f"/api/waiting-list/{e.id}/schedule", headers=headers(clinic["tenant"]),
                    json=_schedule_body(clinic))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "scheduled"
    assert body["appointment"]["waiting_list_id"] == e.id
    db.expire_all()
    assert db.get(models.WaitingListEntry, e.id).status == models.WaitingListStatus.scheduled
    appt = db.query(models.Appointment).one()
    assert appt.waiting_list_id == e.id
    assert appt.patient_id == clinic["patient"].id
    assert appt.professional_id == clinic["professional"].id
    assert (appt.start_datetime, appt.end_datetime) == (datetime(2030, 1, 7, 10, 0), datetime(2030, 1, 7, 11, 0))
    assert appt.status == models.AppointmentStatus.scheduled


def test_schedule_rolls_back_on_conflict(client, db, clinic):
    make_appointment(db, clinic["tenant"], clinic["patient"], clinic["professional"],
                     datetime(2030, 1, 7, 10, 30), datetime(2030, 1, 7, 11, 30))
    e = _entry(db, clinic)
    r = client.post(f"/api/waiting-list/{e.id}/schedule", headers=headers(clinic["tenant"]),
                    json=_schedule_body(clinic))
    assert r.status_code == 409
    db.expire_all()
    assert db.get(models.WaitingListEntry, e.id).status == models.WaitingListStatus.waiting
    assert db.query(models.Appointment).count() == 1


def test_schedule_invalid_times_creates_nothing(client, db, clinic):
    e = _entry(db, clinic)
    r = client.post(f"/api/waiting-list/{e.id}/schedule", headers=headers(clinic["tenant"]),
                    json=_schedule_body(clinic, start="2030-01-07T11:00:00", end="2030-01-07T10:00:00"))
    assert r.status_code == 422
    db.expire_all()
    assert db.query(models.Appointment).count() == 0
    assert db.get(models.WaitingListEntry, e.id).status == models.WaitingListStatus.waiting


def test_schedule_terminal_entry_is_rejected(client, db, clinic):
    e = _entry(db, clinic, status=models.WaitingListStatus.cancelled)
    r = client.post(f"/api/waiting-list/{e.id}/schedule", headers=headers(clinic["tenant"]),
                    json=_schedule_body(clinic))
    assert r.status_code == 409
    db.expire_all()
    assert db.query(models.Appointment).count() == 0


def test_auto_schedule_takes_first_preferred_slot(client, db, clinic):
    e = _entry(db, clinic, preferred_date=date(2030, 1, 7),
               preferred_time_start=time(14, 0), preferred_time_end=time(16, 0))
    r = client.post(f"/api/waiting-list/{e.id}/auto-schedule", headers=headers(clinic["tenant"]))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["slot"]["startTime"] == "14:00"
    assert body["appointment"]["start_datetime"].startswith("2030-01-07T14:00")
    assert body["status"] == "scheduled"


def test_auto_schedule_without_slots(client, db, clinic):
    closed = {d: {"enabled": False} for d in ("monday", "tuesday", "wednesday", "thursday",
                                              "friday", "saturday", "sunday")}
    prof = make_professional(db, clinic["tenant"], name="Dr. Sem Agenda", working_hours=closed)
    e = make_entry(db, clinic["tenant"], clinic["patient"], prof)
    r = client.post(f"/api/waiting-list/{e.id}/auto-schedule", headers=headers(clinic["tenant"]))
    assert r.status_code == 400


# ====== Permisos ======
def test_delete_requires_super_admin(client, db, clinic):
    e = _entry(db, clinic)
    t = clinic["tenant"]
    assert client.delete(f"/api/waiting-list/{e.id}", headers=headers(t)).status_code == 403
    r = client.delete(f"/api/waiting-list/{e.id}", headers=headers(t, admin=True))
    assert r.status_code == 200
    assert client.get(f"/api/waiting-list/{e.id}", headers=headers(t)).status_code == 404


def test_professional_role_is_read_only(client, db, clinic):
    e = _entry(db, clinic)
    h = headers(clinic["tenant"], role="professional")
    assert client.get("/api/waiting-list", headers=h).status_code == 200
    assert client.patch(f"/api/waiting-list/{e.id}/status", headers=h,
                        json={"status": "cancelled"}).status_code == 403


def test_missing_tenant_header(client):
    assert client.get("/api/waiting-list", headers={"X-User-Role": "clinic_owner"}).status_code == 401


def test_super_admin_role_needs_token(client, clinic):
    h = headers(clinic["tenant"], role="super_admin")
    assert client.get("/api/waiting-list", headers=h).status_code == 403
    h["X-Admin-Token"] = ADMIN_TOKEN
    assert client.get("/api/waiting-list", headers=h).status_code == 200
