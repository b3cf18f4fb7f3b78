from datetime import date, datetime, time, timedelta, timezone

from sqlmodel import select

from barbershop.models import Appointment, BarberSchedule, Block, Payment

from conftest import next_open_day, next_weekday


def _book(http, headers, service, day, time="10:00", **extra):
    payload = {"service_id": service.id, "date": day.isoformat(), "time": time, **extra}
    return http.post("/appointments", json=payload, headers=headers)


def test_client_books_at_service_price(client, client_headers, service) -> None:
    response = _book(client, client_headers, service, next_open_day())

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "reserved"
    assert body["price"] == 8000
    assert body["barber_id"] is None
    assert body["deposit_required"] is False


def test_booking_requires_authentication(client, service) -> None:
    response = _book(client, {}, service, next_open_day())

    assert response.status_code == 401
    assert response.json() == {"status": 401, "message": "Not authenticated"}


def test_malformed_time_is_rejected_with_envelope(client, client_headers, service) -> None:
    response = _book(client, client_headers, service, next_open_day(), time="9:00")

    assert response.status_code == 422
    body = response.json()
    assert body["status"] == 422
    assert "time" in body["message"]


def test_booking_on_closed_day_is_rejected(client, client_headers, service) -> None:
    response = _book(client, client_headers, service, next_weekday(6))

    assert response.status_code == 422
    assert response.json()["message"] == "The shop is closed that day"


def test_booking_with_busy_barber_conflicts(client, client_headers, service, barbers) -> None:
    day = next_open_day()
    first = _book(client, client_headers, service, day, barber_id=barbers[0].id)
    assert first.status_code == 201

    clash = _book(client, client_headers, service, day, time="10:44", barber_id=barbers[0].id)
    after = _book(client, client_headers, service, day, time="10:45", barber_id=barbers[0].id)

    assert clash.status_code == 409
    assert clash.json() == {"status": 409, "message": "Barber already has an appointment at that time"}
    assert after.status_code == 201


def test_admin_booking_creates_client_profile(client, admin_headers, service, session) -> None:
    response = _book(
        client, admin_headers, service, next_open_day(), price=6000,
        client={"first_name": "Pedro", "last_name": "Sánchez", "email": "Pedro@Example.com"},
    )

    assert response.status_code == 201
    assert response.json()["price"] == 6000

    missing = _book(client, admin_headers, service, next_open_day())
    assert missing.status_code == 422


def test_assigning_conflicting_barber_returns_409(client, admin_headers, client_headers, service, barbers) -> None:
    day = next_open_day()
    taken = _book(client, client_headers, service, day, time="10:00", barber_id=barbers[0].id).json()
    loose = _book(client, client_headers, service, day, time="10:30").json()

    response = client.patch(f"/appointments/{loose['id']}/assign", json={"barber_id": barbers[0].id}, headers=admin_headers)
    assert response.status_code == 409

    response = client.patch(f"/appointments/{loose['id']}/assign", json={"barber_id": barbers[1].id}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["barber_id"] == barbers[1].id

    # reassigning an appointment onto its own slot is not a conflict
    response = client.patch(f"/appointments/{taken['id']}/assign", json={"barber_id": barbers[0].id}, headers=admin_headers)
    assert response.status_code == 200


def test_barber_availability_map(client, admin_headers, client_headers, service, barbers) -> None:
    day = next_open_day()
    _book(client, client_headers, service, day, time="10:00", barber_id=barbers[0].id)
    loose = _book(client, client_headers, service, day, time="10:15").json()

    response = client.get(f"/appointments/barber-availability?ids={loose['id']}", headers=admin_headers)

    assert response.status_code == 200
    flags = {row["barber_id"]: row["available"] for row in response.json()[str(loose["id"])]}
    assert flags == {barbers[0].id: False, barbers[1].id: True}


def test_cancel_twice_conflicts(client, client_headers, service) -> None:
    appt = _book(client, client_headers, service, next_open_day()).json()

    first = client.patch(f"/appointments/{appt['id']}/cancel", headers=client_headers)
    second = client.patch(f"/appointments/{appt['id']}/cancel", headers=client_headers)

    assert first.status_code == 200
    assert first.json()["appointment"]["status"] == "canceled"
    assert first.json()["deposit"] is None
    assert second.status_code == 409


def test_canceled_slot_is_free_again(client, client_headers, service, barbers) -> None:
    day = next_open_day()
    appt = _book(client, client_headers, service, day, barber_id=barbers[0].id).json()
    client.patch(f"/appointments/{appt['id']}/cancel", headers=client_headers)

    again = _book(client, client_headers, service, day, barber_id=barbers[0].id)

    assert again.status_code == 201


def test_barber_completes_own_appointment(client, client_headers, barber_headers, admin_headers, service, barbers) -> None:
    day = next_open_day()
    mine = _book(client, client_headers, service, day, barber_id=barbers[0].id).json()
    other = _book(client, client_headers, service, day, barber_id=barbers[1].id).json()

    assert client.patch(f"/appointments/{other['id']}/complete", headers=barber_headers).status_code == 403

    done = client.patch(f"/appointments/{mine['id']}/complete", headers=barber_headers)
    assert done.status_code == 200
    assert done.json()["status"] == "completed"

    assert client.patch(f"/appointments/{mine['id']}/complete", headers=admin_headers).status_code == 409
    assert client.patch(f"/appointments/{mine['id']}/cancel", headers=admin_headers).status_code == 409


def test_list_filters_and_paginates(client, admin_headers, client_headers, service, barbers) -> None:
    day = next_open_day()
    for hour in ("09:00", "10:00", "11:00"):
        _book(client, client_headers, service, day, time=hour)
    _book(client, client_headers, service, day, time="12:00", barber_id=barbers[0].id)

    page = client.get("/appointments?unassigned=true&limit=2&page=1", headers=admin_headers).json()
    assert page["total"] == 3
    assert page["pages"] == 2
    assert len(page["items"]) == 2

    assigned = client.get(f"/appointments?barber_id={barbers[0].id}&status=reserved,pending", headers=admin_headers).json()
    assert assigned["total"] == 1

    bad = client.get("/appointments?status=reserved,lost", headers=admin_headers)
    assert bad.status_code == 422


def test_clients_only_see_their_appointments(client, client_headers, admin_headers, service, barbers) -> None:
    day = next_open_day()
    own = _book(client, client_headers, service, day).json()
    foreign = _book(
        client, admin_headers, service, day, time="15:00",
        client={"first_name": "Sofía", "last_name": "Romero", "email": "sofia@example.com"},
    ).json()

    mine = client.get("/appointments/mine", headers=client_headers).json()
    assert [a["id"] for a in mine] == [own["id"]]
    assert client.get(f"/appointments/{foreign['id']}", headers=client_headers).status_code == 403
    assert client.get("/appointments", headers=client_headers).status_code == 403


def test_update_moves_appointment_with_conflict_check(client, admin_headers, client_headers, service, barbers) -> None:
    day = next_open_day()
    _book(client, client_headers, service, day, time="10:00", barber_id=barbers[0].id)
    appt = _book(client, client_headers, service, day, time="12:00", barber_id=barbers[0].id).json()

    clash = client.put(f"/appointments/{appt['id']}", json={"time": "10:30"}, headers=admin_headers)
    assert clash.status_code == 409

    moved = client.put(f"/appointments/{appt['id']}", json={"time": "11:00", "notes": "Late"}, headers=admin_headers)
    assert moved.status_code == 200
    assert moved.json()["time"] == "11:00"
    assert moved.json()["notes"] == "Late"


def test_deposit_policy_puts_booking_on_hold(client, admin_headers, client_headers, service, session) -> None:
    client.put("/settings", json={"deposits_enabled": True, "deposit_policy": "all"}, headers=admin_headers)

    appt = _book(client, client_headers, service, next_open_day(date.today() + timedelta(days=2))).json()
    assert appt["status"] == "pending"
    assert appt["payment_status"] == "pending"

    payment = session.exec(select(Payment).where(Payment.appointment_id == appt["id"])).one()
    assert payment.amount == 2400

    approved = client.post(f"/payments/{payment.id}/status", json={"status": "approved"}, headers=admin_headers)
    assert approved.status_code == 200

    refreshed = client.get(f"/appointments/{appt['id']}", headers=client_headers).json()
    assert refreshed["status"] == "reserved"
    assert refreshed["payment_status"] == "paid"

    canceled = client.patch(f"/appointments/{appt['id']}/cancel", headers=client_headers).json()
    assert canceled["deposit"] == "refunded"

    again = client.post(f"/payments/{payment.id}/status", json={"status": "approved"}, headers=admin_headers)
    assert again.status_code == 409


def test_maintenance_expires_stale_holds(client, admin_headers, session, customer, service) -> None:
    appt = Appointment(
        date=next_open_day(), time="10:00", client_id=customer.id, service_id=service.id,
        status="pending", price=8000, expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
    )
    session.add(appt)
    session.commit()

    response = client.post("/appointments/maintenance", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()["expired_holds"] == 1
    session.refresh(appt)
    assert appt.status == "canceled"


def test_booking_respects_barber_full_day_block(client, client_headers, session, service, barbers) -> None:
    day = next_open_day()
    session.add(Block(barber_id=barbers[0].id, start_date=day, end_date=day, kind="full_day", reason="Doctor"))
    session.commit()

    blocked = _book(client, client_headers, service, day, barber_id=barbers[0].id)
    other = _book(client, client_headers, service, day, barber_id=barbers[1].id)

    assert blocked.status_code == 409
    assert blocked.json()["message"] == "Appointment overlaps a block"
    assert other.status_code == 201


def test_booking_outside_barber_schedule_is_rejected(client, client_headers, session, service, barbers) -> None:
    session.add(BarberSchedule(
        barber_id=barbers[0].id, working_days=[0, 1, 2, 3, 4], day_start=time(10, 0), day_end=time(14, 0),
    ))
    session.commit()

    saturday = _book(client, client_headers, service, next_weekday(5), barber_id=barbers[0].id)
    too_early = _book(client, client_headers, service, next_weekday(0), time="09:00", barber_id=barbers[0].id)

    assert saturday.status_code == 422
    assert saturday.json()["message"] == "Barber is not scheduled to work that day"
    assert too_early.status_code == 422


def test_booking_inside_shop_lunch_block_conflicts(client, client_headers, session, service) -> None:
    day = next_open_day()
    session.add(Block(start_date=day, end_date=day, kind="time_range", start_time="12:00", end_time="13:00", reason="Lunch"))
    session.commit()

    inside = _book(client, client_headers, service, day, time="12:00")
    overlapping = _book(client, client_headers, service, day, time="11:30")
    before = _book(client, client_headers, service, day, time="11:15")

    assert inside.status_code == 409
    assert overlapping.status_code == 409
    assert before.status_code == 201


def test_assigning_blocked_barber_conflicts(client, admin_headers, client_headers, session, service, barbers) -> None:
    day = next_open_day()
    appt = _book(client, client_headers, service, day).json()
    session.add(Block(barber_id=barbers[0].id, start_date=day, end_date=day, kind="full_day", reason="Off"))
    session.commit()

    response = client.patch(f"/appointments/{appt['id']}/assign", json={"barber_id": barbers[0].id}, headers=admin_headers)

    assert response.status_code == 409


def test_update_cannot_cancel_or_complete(client, admin_headers, client_headers, service) -> None:
    appt = _book(client, client_headers, service, next_open_day()).json()

    for status in ("canceled", "completed", "pending"):
        response = client.put(f"/appointments/{appt['id']}", json={"status": status}, headers=admin_headers)
        assert response.status_code == 422

    assert client.get(f"/appointments/{appt['id']}", headers=client_headers).json()["status"] == "reserved"


def test_update_cannot_confirm_unpaid_deposit(client, admin_headers, client_headers, service, session) -> None:
    client.put("/settings", json={"deposits_enabled": True, "deposit_policy": "all"}, headers=admin_headers)
    appt = _book(client, client_headers, service, next_open_day()).json()
    assert appt["status"] == "pending"

    response = client.put(f"/appointments/{appt['id']}", json={"status": "reserved"}, headers=admin_headers)
    assert response.status_code == 409

    payment = session.exec(select(Payment).where(Payment.appointment_id == appt["id"])).one()
    client.post(f"/payments/{payment.id}/status", json={"status": "approved"}, headers=admin_headers)
    refreshed = client.get(f"/appointments/{appt['id']}", headers=client_headers).json()
    assert refreshed["status"] == "reserved"
    assert refreshed["payment_status"] == "paid"


def test_update_revalidates_new_date_and_time(client, admin_headers, client_headers, service) -> None:
    appt = _book(client, client_headers, service, next_open_day()).json()

    sunday = client.put(
        f"/appointments/{appt['id']}", json={"date": next_weekday(6).isoformat(), "time": "10:00"}, headers=admin_headers,
    )
    late = client.put(f"/appointments/{appt['id']}", json={"time": "23:30"}, headers=admin_headers)
    past = client.put(
        f"/appointments/{appt['id']}", json={"date": (date.today() - timedelta(days=3)).isoformat()}, headers=admin_headers,
    )

    assert sunday.status_code == 422
    assert late.status_code == 422
    assert past.status_code == 422
