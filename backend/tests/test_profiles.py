"""
Profile, directory and availability endpoints.
"""
import json

from mindcare.models import User
from conftest import PASSWORD, auth_headers, next_weekday

# 1x1 transparent PNG
PNG = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)


class TestUserProfile:

    async def test_get_profile(self, client, patient):
        res = await client.get("/user/profile", headers=auth_headers(patient))
        assert res.status_code == 200
        assert res.json()["email"] == patient.email

    async def test_multipart_update_with_image(self, client, patient):
        res = await client.put(
            "/user/profile",
            data={
                "first_name": "Robin",
                "date_of_birth": "1990-05-01",
                "emergency_contact": json.dumps({"name": "Kim", "phone": "555-0100", "relationship": "sibling"}),
                "preferences": json.dumps({"reminders": True}),
            },
            files={"profile_image": ("me.png", PNG, "image/png")},
            headers=auth_headers(patient),
        )
        assert res.status_code == 200
        body = res.json()
        assert body["first_name"] == "Robin"
        assert body["date_of_birth"] == "1990-05-01"
        assert body["emergency_contact"]["relationship"] == "sibling"
        assert body["profile_image"].startswith("/static/profiles/")

        served = await client.get(body["profile_image"])
        assert served.status_code == 200

    async def test_rejects_non_image(self, client, patient):
        res = await client.put(
            "/user/profile",
            data={"first_name": "Robin"},
            files={"profile_image": ("notes.txt", b"hello", "text/plain")},
            headers=auth_headers(patient),
        )
        assert res.status_code == 400

    async def test_future_birth_date_rejected(self, client, patient):
        res = await client.put(
            "/user/profile", data={"date_of_birth": "2999-01-01"}, headers=auth_headers(patient)
        )
        assert res.status_code == 400
        assert res.json()["errors"][0]["field"] == "date_of_birth"

    async def test_change_password(self, client, patient):
        res = await client.put(
            "/user/change-password",
            json={"current_password": "wrong", "new_password": "another1"},
            headers=auth_headers(patient),
        )
        assert res.status_code == 400

        res = await client.put(
            "/user/change-password",
            json={"current_password": PASSWORD, "new_password": "another1"},
            headers=auth_headers(patient),
        )
        assert res.status_code == 200
        login = await client.post("/auth/login", json={"email": patient.email, "password": "another1", "user_type": "user"})
        assert login.status_code == 200

    async def test_deactivate_keeps_row(self, client, patient, session_factory):
        res = await client.delete("/user/deactivate", headers=auth_headers(patient))
        assert res.status_code == 204

        async with session_factory() as s:
            stored = await s.get(User, patient.id)
            assert stored is not None
            assert stored.is_active is False


class TestDirectory:

    async def test_only_verified_active_listed(self, client, patient, make_account):
        shown = await make_account("therapist", languages=["English", "Korean"])
        await make_account("therapist", verified=False)
        res = await client.get("/user/therapists", headers=auth_headers(patient))
        assert [t["id"] for t in res.json()["therapists"]] == [shown.id]

    async def test_filters(self, client, patient, make_account):
        a = await make_account("therapist", specializations=["grief"], languages=["Spanish"])
        b = await make_account("therapist", specializations=["anxiety"], languages=["English"])
        headers = auth_headers(patient)

        res = await client.get("/user/therapists", params={"specialization": "grief"}, headers=headers)
        assert [t["id"] for t in res.json()["therapists"]] == [a.id]

        res = await client.get("/user/therapists", params={"language": "english"}, headers=headers)
        assert [t["id"] for t in res.json()["therapists"]] == [b.id]

        res = await client.get("/user/therapists", params={"search": b.last_name}, headers=headers)
        assert [t["id"] for t in res.json()["therapists"]] == [b.id]

    async def test_pagination(self, client, patient, make_account):
        for _ in range(3):
            await make_account("therapist")
        res = await client.get("/user/therapists", params={"limit": 2, "page": 2}, headers=auth_headers(patient))
        body = res.json()
        assert body["total"] == 3
        assert body["total_pages"] == 2
        assert len(body["therapists"]) == 1

    async def test_detail_includes_availability(self, client, patient, therapist):
        res = await client.get(f"/user/therapists/{therapist.id}", headers=auth_headers(patient))
        assert res.status_code == 200
        body = res.json()
        assert body["license_number"] == "LIC-123"
        assert body["availability"]["friday"]["start"] == "09:00"


class TestTherapistSide:

    async def test_update_availability(self, client, patient, therapist):
        res = await client.put(
            "/therapist/availability",
            json={"availability": {
                "saturday": {"start": "10:00", "end": "12:00", "available": True},
                "monday": {"start": "09:00", "end": "17:00", "available": False},
            }},
            headers=auth_headers(therapist),
        )
        assert res.status_code == 200
        availability = res.json()["availability"]
        assert availability["saturday"] == {"start": "10:00", "end": "12:00", "available": True}
        assert availability["monday"]["available"] is False

        slots = await client.get(
            f"/appointments/available-slots/{therapist.id}",
            params={"date": next_weekday(5).isoformat()},
            headers=auth_headers(patient),
        )
        assert [s["start_time"] for s in slots.json()["available_slots"]] == ["10:00", "11:00"]

    async def test_availability_end_before_start(self, client, therapist):
        res = await client.put(
            "/therapist/availability",
            json={"availability": {"monday": {"start": "17:00", "end": "09:00", "available": True}}},
            headers=auth_headers(therapist),
        )
        assert res.status_code == 400

    async def test_multipart_profile_update(self, client, therapist):
        res = await client.put(
            "/therapist/profile",
            data={
                "hourly_rate": "120",
                "specializations": "grief, couples",
                "education": json.dumps([{"degree": "MA", "institution": "College", "year": 2001}]),
            },
            headers=auth_headers(therapist),
        )
        assert res.status_code == 200
        body = res.json()
        assert body["hourly_rate"] == 120
        assert body["specializations"] == ["grief", "couples"]
        assert body["education"][0]["degree"] == "MA"

    async def test_status_transitions(self, client, patient, therapist):
        booked = await client.post(
            "/appointments/book",
            json={"therapist_id": therapist.id, "date": next_weekday(0).isoformat(), "start_time": "10:00"},
            headers=auth_headers(patient),
        )
        url = f"/therapist/appointments/{booked.json()['id']}/status"
        headers = auth_headers(therapist)

        early = await client.put(url, json={"status": "completed"}, headers=headers)
        assert early.status_code == 400

        assert (await client.put(url, json={"status": "confirmed"}, headers=headers)).json()["status"] == "confirmed"
        assert (await client.put(url, json={"status": "completed"}, headers=headers)).json()["status"] == "completed"

        listed = await client.get("/therapist/appointments", params={"status": "completed"}, headers=headers)
        assert listed.json()["total"] == 1

        dashboard = (await client.get("/therapist/dashboard", headers=headers)).json()
        assert dashboard["completed_appointments"] == 1
        assert dashboard["total_earnings"] == 100

        analytics = await client.get("/therapist/analytics", params={"period": "year"}, headers=headers)
        assert analytics.status_code == 200
        assert len(analytics.json()["appointments"]["labels"]) == 12
        assert analytics.json()["client_stats"]["total_clients"] == 1

    async def test_other_therapists_appointment_hidden(self, client, patient, therapist, make_account):
        booked = await client.post(
            "/appointments/book",
            json={"therapist_id": therapist.id, "date": next_weekday(0).isoformat(), "start_time": "10:00"},
            headers=auth_headers(patient),
        )
        other = await make_account("therapist")
        res = await client.put(
            f"/therapist/appointments/{booked.json()['id']}/status",
            json={"status": "confirmed"},
            headers=auth_headers(other),
        )
        assert res.status_code == 404
