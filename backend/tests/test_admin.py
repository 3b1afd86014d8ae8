from datetime import date, time

import pytest
from sqlalchemy import select

from mindcare.models import Appointment, ChatMessage, Notification, User
from conftest import PASSWORD, auth_headers, next_weekday

ADMIN_GETS = ["/admin/users", "/admin/therapists", "/admin/analytics", "/admin/chatbot-analytics"]


class TestRoleGuard:

    @pytest.mark.parametrize("path", ADMIN_GETS)
    async def test_user_token_forbidden(self, client, patient, path):
        res = await client.get(path, headers=auth_headers(patient))
        assert res.status_code == 403

    @pytest.mark.parametrize("path", ADMIN_GETS)
    async def test_no_token_unauthorized(self, client, path):
        res = await client.get(path)
        assert res.status_code == 401

    async def test_therapist_token_forbidden(self, client, therapist):
        res = await client.put(f"/admin/therapists/{therapist.id}/verify", headers=auth_headers(therapist))
        assert res.status_code == 403

    async def test_admin_cannot_use_user_routes(self, client, admin):
        assert (await client.get("/user/profile", headers=auth_headers(admin))).status_code == 403

    @pytest.mark.parametrize("path", ADMIN_GETS)
    async def test_admin_ok(self, client, admin, path):
        res = await client.get(path, headers=auth_headers(admin))
        assert res.status_code == 200


class TestAccounts:

    async def test_list_and_search_users(self, client, admin, make_account):
        await make_account("user")
        await make_account("user")
        res = await client.get("/admin/users", headers=auth_headers(admin))
        assert res.json()["total"] == 2

        res = await client.get("/admin/users", params={"search": "number2"}, headers=auth_headers(admin))
        assert [u["last_name"] for u in res.json()["users"]] == ["Number2"]

    async def test_verify_therapist_notifies(self, client, admin, make_account, session_factory):
        pending = await make_account("therapist", verified=False)
        res = await client.get("/admin/therapists", params={"status": "pending"}, headers=auth_headers(admin))
        assert [t["id"] for t in res.json()["therapists"]] == [pending.id]

        res = await client.put(f"/admin/therapists/{pending.id}/verify", headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.json()["is_verified"] is True

        async with session_factory() as s:
            notes = (await s.execute(select(Notification).where(Notification.user_id == pending.id))).scalars().all()
            assert [n.type for n in notes] == ["account_verified"]

    async def test_toggle_status_requires_matching_type(self, client, admin, patient):
        res = await client.put(
            f"/admin/users/{patient.id}/toggle-status", params={"user_type": "therapist"}, headers=auth_headers(admin)
        )
        assert res.status_code == 404

        res = await client.put(
            f"/admin/users/{patient.id}/toggle-status", params={"user_type": "user"}, headers=auth_headers(admin)
        )
        assert res.status_code == 200
        assert res.json()["is_active"] is False

        login = await client.post("/auth/login", json={"email": patient.email, "password": PASSWORD, "user_type": "user"})
        assert login.status_code == 403

    async def test_update_user_email_conflict(self, client, admin, make_account):
        a = await make_account("user")
        b = await make_account("user")
        res = await client.put(f"/admin/users/{a.id}", json={"email": b.email}, headers=auth_headers(admin))
        assert res.status_code == 409

        res = await client.put(f"/admin/users/{a.id}", json={"first_name": "Renamed"}, headers=auth_headers(admin))
        assert res.status_code == 200
        assert res.json()["first_name"] == "Renamed"

    async def test_update_therapist_profile_fields(self, client, admin, therapist):
        res = await client.put(
            f"/admin/therapists/{therapist.id}",
            json={"hourly_rate": 120, "specializations": "grief, stress"},
            headers=auth_headers(admin),
        )
        assert res.status_code == 200
        assert res.json()["hourly_rate"] == 120
        assert res.json()["specializations"] == ["grief", "stress"]

    async def test_delete_user_is_hard_delete(self, client, admin, patient, therapist, db, session_factory):
        db.add(Appointment(
            user=patient, therapist=therapist, date=next_weekday(0),
            start_time=time(9, 0), end_time=time(10, 0), duration=60, status="pending", amount=100,
        ))
        await db.commit()

        res = await client.delete(f"/admin/users/{patient.id}", headers=auth_headers(admin))
        assert res.status_code == 204

        async with session_factory() as s:
            assert await s.get(User, patient.id) is None
            remaining = (await s.execute(select(Appointment))).scalars().all()
            assert remaining == []

    async def test_admin_change_password_min_length(self, client, admin):
        res = await client.put(
            "/admin/change-password",
            json={"current_password": PASSWORD, "new_password": "short"},
            headers=auth_headers(admin),
        )
        assert res.status_code == 400

        res = await client.put(
            "/admin/change-password",
            json={"current_password": PASSWORD, "new_password": "much-longer-pass"},
            headers=auth_headers(admin),
        )
        assert res.status_code == 200


class TestAnalytics:

    async def test_platform_stats(self, client, admin, patient, therapist, db):
        today = date.today()
        for status, amount in (("completed", 100), ("completed", 50), ("cancelled", 100)):
            db.add(Appointment(
                user=patient, therapist=therapist, date=today,
                start_time=time(9, 0), end_time=time(10, 0), duration=60, status=status, amount=amount,
            ))
        db.add(ChatMessage(user_id=patient.id, session_id="s1", message_type="user", message="hi", intent="greeting"))
        await db.commit()

        res = await client.get("/admin/analytics", params={"period": "week"}, headers=auth_headers(admin))
        assert res.status_code == 200
        body = res.json()
        stats = body["platform_stats"]
        assert stats["total_users"] == 1
        assert stats["total_therapists"] == 1
        assert stats["total_appointments"] == 3
        assert stats["completed_appointments"] == 2
        assert stats["total_revenue"] == 150
        assert stats["chatbot_messages"] == 1
        assert len(body["revenue_analytics"]["labels"]) == 7
        assert body["revenue_analytics"]["revenue"][-1] == 150
        assert body["user_growth"]["users"][-1] == 1
        assert body["therapist_stats"] == {"verified": 1, "pending": 0, "active": 1, "inactive": 0}
        assert body["appointment_status"] == {
            "labels": ["pending", "confirmed", "completed", "cancelled"],
            "data": [0, 0, 2, 1],
        }

    async def test_bad_period(self, client, admin):
        res = await client.get("/admin/analytics", params={"period": "decade"}, headers=auth_headers(admin))
        assert res.status_code == 400

    async def test_chatbot_analytics(self, client, admin, patient):
        headers = await _login(client, patient)
        await client.post("/chatbot/send", json={"message": "I feel so anxious"}, headers=headers)
        await client.post("/chatbot/send", json={"message": "I want to kill myself"}, headers=headers)
        await client.post("/chatbot/send", json={"message": "worried again"}, headers=headers)

        res = await client.get("/admin/chatbot-analytics", params={"days": 7}, headers=auth_headers(admin))
        body = res.json()
        assert body["total_messages"] == 6
        assert body["escalation_count"] == 1
        assert body["top_intents"][0] == {"intent": "anxiety", "count": 2}
        assert dict(zip(body["mood_distribution"]["labels"], body["mood_distribution"]["data"])) == {
            "anxious": 2, "crisis": 1,
        }


async def _login(client, user):
    res = await client.post("/auth/login", json={"email": user.email, "password": PASSWORD, "user_type": user.role})
    return {"Authorization": f"Bearer {res.json()['access_token']}"}
