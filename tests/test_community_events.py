"""Tests for community events and registration."""

from datetime import datetime, timedelta

from app.community.events import list_upcoming_events
from app.core import messages
from helpers import community_member, make_admin


def _future(days=3):
    return (datetime.utcnow() + timedelta(days=days)).strftime("%Y-%m-%d")


async def _admin(client, db):
    admin = await community_member(client, email="admin@example.com")
    await make_admin(db, admin["user_id"], community=True)
    return admin


async def _create_event(client, admin, **overrides):
    payload = {
        "title": "Live Q&A",
        "description": "Weekly session",
        "event_date": _future(),
        "event_time": "19:00",
        "event_type": "qa",
        "is_online": True,
        "meeting_link": "https://meet.example.com/abc",
    }
    payload.update(overrides)
    return await client.post("/community/events", json=payload, headers=admin["headers"])


class TestEventAdmin:
    async def test_create_requires_admin(self, client):
        user = await community_member(client)
        response = await _create_event(client, user)
        assert response.status_code == 403

    async def test_online_needs_link_offline_needs_location(self, client, db):
        admin = await _admin(client, db)
        assert (await _create_event(client, admin, meeting_link=None)).status_code == 400
        assert (await _create_event(client, admin, is_online=False, location=None)).status_code == 400
        offline = await _create_event(client, admin, is_online=False, location="Kuwait City")
        assert offline.status_code == 201

    async def test_bad_date(self, client, db):
        admin = await _admin(client, db)
        assert (await _create_event(client, admin, event_date="tomorrow")).status_code == 422
        assert (await _create_event(client, admin, event_date="2099-13-45")).status_code == 422
        assert (await _create_event(client, admin, event_time="99:99")).status_code == 422
        assert (await _create_event(client, admin, event_time="evening")).status_code == 422

    async def test_date_and_time_stored_zero_padded(self, client, db):
        admin = await _admin(client, db)
        event = (await _create_event(client, admin, event_date="2099-1-5", event_time="7:30")).json()
        assert event["event_date"] == "2099-01-05"
        assert event["event_time"] == "07:30"

        past = (await _create_event(client, admin, event_date="2020-1-5")).json()
        assert past["event_date"] == "2020-01-05"
        listed = (await client.get("/community/events", headers=admin["headers"])).json()
        assert [e["event_id"] for e in listed] == [event["event_id"]]

    async def test_delete_removes_registrations(self, client, db):
        admin = await _admin(client, db)
        event = (await _create_event(client, admin)).json()
        await client.post(f"/community/events/{event['event_id']}/register", headers=admin["headers"])

        response = await client.delete(f"/community/events/{event['event_id']}", headers=admin["headers"])
        assert response.json() == {"success": True}
        assert await db.community_event_registrations.count_documents({}) == 0


class TestListing:
    async def test_upcoming_sorted_with_flags(self, db):
        today = "2024-05-10"
        for event_id, date, time in [
            ("E_PAST", "2024-05-09", "10:00"),
            ("E_LATE", "2024-05-10", "20:00"),
            ("E_EARLY", "2024-05-10", "08:00"),
            ("E_NEXT", "2024-05-12", "09:00"),
        ]:
            await db.community_events.insert_one({
                "event_id": event_id, "title": event_id, "event_date": date, "event_time": time,
                "max_attendees": 1, "attendees_count": 1 if event_id == "E_NEXT" else 0,
            })
        await db.community_event_registrations.insert_one({"event_id": "E_LATE", "user_id": "USR_1"})

        events = await list_upcoming_events(db, "USR_1", today=today)
        assert [e["event_id"] for e in events] == ["E_EARLY", "E_LATE", "E_NEXT"]
        assert events[1]["is_registered"] is True
        assert events[2]["is_full"] is True
        assert events[0]["is_full"] is False


class TestRegistration:
    async def test_register_unregister(self, client, db):
        admin = await _admin(client, db)
        member = await community_member(client, email="m@example.com")
        event = (await _create_event(client, admin, max_attendees=5)).json()
        url = f"/community/events/{event['event_id']}/register"

        first = (await client.post(url, headers=member["headers"])).json()
        assert first == {"success": True, "message": messages.REGISTERED, "attendees_count": 1}

        again = (await client.post(url, headers=member["headers"])).json()
        assert again["success"] is False
        assert again["message"] == messages.ALREADY_REGISTERED
        assert again["attendees_count"] == 1

        left = (await client.delete(url, headers=member["headers"])).json()
        assert left == {"success": True, "message": messages.UNREGISTERED, "attendees_count": 0}

        not_registered = (await client.delete(url, headers=member["headers"])).json()
        assert not_registered["success"] is False
        assert not_registered["message"] == messages.NOT_REGISTERED

    async def test_capacity(self, client, db):
        admin = await _admin(client, db)
        member = await community_member(client, email="m@example.com")
        event = (await _create_event(client, admin, max_attendees=1)).json()
        url = f"/community/events/{event['event_id']}/register"

        assert (await client.post(url, headers=admin["headers"])).json()["success"] is True
        full = (await client.post(url, headers=member["headers"])).json()
        assert full == {"success": False, "message": messages.EVENT_FULL, "attendees_count": 1}

    async def test_unknown_event(self, client):
        member = await community_member(client)
        response = await client.post("/community/events/EVT_NOPE/register", headers=member["headers"])
        assert response.status_code == 404
