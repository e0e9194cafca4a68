"""
HTTP-level tests for the video meetings router.

Walks through room creation, joining, signaling, leaving and ending as a
browser client would, and checks status codes and response bodies.
"""

import pytest

from conftest import MEETING_ID, PARENT, STUDENT, TEACHER
from meeting_signaling.config import settings
from meeting_signaling.webrtc.persistence import MeetingStatus

API = settings.API_PREFIX


@pytest.fixture
def room(client, teacher_headers):
    response = client.post(f"{API}/rooms", headers=teacher_headers, json={"meetingId": MEETING_ID, "name": "Math review"})
    assert response.status_code == 201
    return response.json()["room"]


@pytest.fixture
def joined_room(client, room, teacher_headers, parent_headers):
    client.get(f"{API}/join/{room['id']}", headers=teacher_headers)
    client.get(f"{API}/join/{room['id']}", headers=parent_headers)
    return room


class TestCreateRoomEndpoint:
    def test_create_returns_room_view(self, client, room, meeting_store):
        assert set(room) == {"id", "name", "meetingId", "joinUrl", "iceServers"}
        assert room["meetingId"] == MEETING_ID
        assert room["joinUrl"] == f"{API}/join/{room['id']}"
        assert room["iceServers"][0]["urls"]
        assert meeting_store.status_of(MEETING_ID) == MeetingStatus.CONFIRMED

    def test_room_name_alias_is_accepted(self, client, teacher_headers):
        response = client.post(f"{API}/rooms", headers=teacher_headers, json={"meetingId": MEETING_ID, "roomName": "Review"})

        assert response.status_code == 201
        assert response.json()["room"]["name"] == "Review"

    def test_missing_meeting_id_is_400(self, client, teacher_headers):
        response = client.post(f"{API}/rooms", headers=teacher_headers, json={"name": "Math review"})

        assert response.status_code == 400
        assert response.json()["details"]["missing"] == ["meetingId"]
        assert response.json()["error_code"] == "bad_request"

    def test_malformed_body_is_400(self, client, teacher_headers):
        response = client.post(
            f"{API}/rooms",
            headers={**teacher_headers, "Content-Type": "application/json"},
            content="{not json",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "validation_error"

    def test_unknown_meeting_is_404(self, client, teacher_headers):
        response = client.post(f"{API}/rooms", headers=teacher_headers, json={"meetingId": "missing", "name": "x"})

        assert response.status_code == 404
        assert response.json()["error_code"] == "meeting_not_found"

    def test_non_participant_is_403(self, client, outsider_headers):
        response = client.post(f"{API}/rooms", headers=outsider_headers, json={"meetingId": MEETING_ID, "name": "x"})

        assert response.status_code == 403

    def test_store_failure_is_500_with_reason(self, client, teacher_headers, meeting_store, manager):
        meeting_store.save_error = RuntimeError("disk full")

        response = client.post(f"{API}/rooms", headers=teacher_headers, json={"meetingId": MEETING_ID, "name": "x"})

        assert response.status_code == 500
        body = response.json()
        assert body["error_code"] == "internal_error"
        assert body["details"]["reason"] == "disk full"
        assert "Traceback" not in response.text
        assert manager.list_active_rooms() == []


class TestMeetingFlow:
    def test_scenario_a_join(self, client, room, teacher_headers, parent_headers):
        response = client.get(f"{API}/join/{room['id']}", headers=teacher_headers)
        assert response.status_code == 200
        assert response.json()["room"]["participants"] == [TEACHER]

        response = client.get(f"{API}/join/{room['id']}", headers=parent_headers)
        body = response.json()
        assert body["room"]["participants"] == [TEACHER, PARENT]
        assert body["room"]["meetingId"] == MEETING_ID
        assert "message" in body

    def test_join_unknown_room_is_404(self, client, teacher_headers):
        response = client.get(f"{API}/join/no-such-room", headers=teacher_headers)

        assert response.status_code == 404
        assert response.json()["message"] == "Meeting room does not exist or has ended"

    def test_join_by_outsider_is_403(self, client, room, outsider_headers):
        response = client.get(f"{API}/join/{room['id']}", headers=outsider_headers)

        assert response.status_code == 403

    def test_scenario_b_offer_and_poll(self, client, joined_room, teacher_headers, parent_headers):
        response = client.post(
            f"{API}/signal/offer",
            headers=teacher_headers,
            json={"roomId": joined_room["id"], "targetUserId": PARENT, "offer": {"sdp": "x"}},
        )
        assert response.status_code == 200
        assert "message" in response.json()

        response = client.get(f"{API}/signal/messages", headers=parent_headers)
        assert response.json() == {
            "messages": [{"type": "offer", "from": TEACHER, "offer": {"sdp": "x"}, "roomId": joined_room["id"]}]
        }

        response = client.get(f"{API}/signal/messages", headers=parent_headers)
        assert response.json() == {"messages": []}

    def test_answer_and_ice_candidate(self, client, joined_room, teacher_headers, parent_headers):
        candidate = {"candidate": "candidate:1 1 UDP 2122252543 10.0.0.2 5000 typ host", "sdpMid": "0", "sdpMLineIndex": 0}

        client.post(
            f"{API}/signal/answer",
            headers=parent_headers,
            json={"roomId": joined_room["id"], "targetUserId": TEACHER, "answer": {"type": "answer", "sdp": "y"}},
        )
        client.post(
            f"{API}/signal/ice-candidate",
            headers=parent_headers,
            json={"roomId": joined_room["id"], "targetUserId": TEACHER, "candidate": candidate},
        )

        messages = client.get(f"{API}/signal/messages", headers=teacher_headers).json()["messages"]
        assert [m["type"] for m in messages] == ["answer", "ice-candidate"]
        assert messages[1]["candidate"] == candidate

    def test_candidate_nulls_survive_the_relay(self, client, joined_room, teacher_headers, parent_headers):
        candidate = {"candidate": "candidate:1", "sdpMid": None, "sdpMLineIndex": 0, "usernameFragment": None}

        response = client.post(
            f"{API}/signal/ice-candidate",
            headers=teacher_headers,
            json={"roomId": joined_room["id"], "targetUserId": PARENT, "candidate": candidate},
        )
        assert response.status_code == 200

        [message] = client.get(f"{API}/signal/messages", headers=parent_headers).json()["messages"]
        assert message["candidate"] == candidate

    def test_scenario_e_missing_target_is_400(self, client, joined_room, teacher_headers, parent_headers):
        response = client.post(
            f"{API}/signal/offer",
            headers=teacher_headers,
            json={"roomId": joined_room["id"], "offer": {"sdp": "x"}},
        )

        assert response.status_code == 400
        assert client.get(f"{API}/signal/messages", headers=parent_headers).json() == {"messages": []}

    def test_offer_to_non_member_is_404(self, client, joined_room, teacher_headers):
        response = client.post(
            f"{API}/signal/offer",
            headers=teacher_headers,
            json={"roomId": joined_room["id"], "targetUserId": STUDENT, "offer": {"sdp": "x"}},
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "user_not_in_room"

    def test_offer_to_unknown_room_is_404(self, client, teacher_headers):
        response = client.post(
            f"{API}/signal/offer",
            headers=teacher_headers,
            json={"roomId": "no-such-room", "targetUserId": PARENT, "offer": {"sdp": "x"}},
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "room_not_found"

    def test_invalid_offer_payload_is_400(self, client, joined_room, teacher_headers):
        response = client.post(
            f"{API}/signal/offer",
            headers=teacher_headers,
            json={"roomId": joined_room["id"], "targetUserId": PARENT, "offer": "v=0"},
        )

        assert response.status_code == 400

    def test_scenario_c_leave_until_empty(self, client, joined_room, teacher_headers, parent_headers, meeting_store, manager):
        response = client.post(f"{API}/leave/{joined_room['id']}", headers=teacher_headers)
        assert response.status_code == 200
        assert manager.get_participants(joined_room["id"]) == [PARENT]

        response = client.post(f"{API}/leave/{joined_room['id']}", headers=parent_headers)
        assert response.status_code == 200
        assert manager.list_active_rooms() == []
        assert meeting_store.status_of(MEETING_ID) == MeetingStatus.COMPLETED

        response = client.post(f"{API}/leave/{joined_room['id']}", headers=parent_headers)
        assert response.status_code == 404

    def test_scenario_d_student_cannot_end(self, client, room, student_headers, manager):
        client.get(f"{API}/join/{room['id']}", headers=student_headers)

        response = client.post(f"{API}/end/{room['id']}", headers=student_headers)

        assert response.status_code == 403
        assert [r.id for r in manager.list_active_rooms()] == [room["id"]]

    def test_creator_ends_meeting(self, client, joined_room, teacher_headers, parent_headers, manager):
        response = client.post(f"{API}/end/{joined_room['id']}", headers=teacher_headers)

        assert response.status_code == 200
        assert manager.list_active_rooms() == []
        assert client.get(f"{API}/signal/messages", headers=parent_headers).json() == {
            "messages": [{"type": "meeting-ended", "roomId": joined_room["id"]}]
        }

    def test_admin_sees_active_rooms(self, client, joined_room, admin_headers):
        response = client.get(f"{API}/rooms", headers=admin_headers)

        [summary] = response.json()["rooms"]
        assert summary["id"] == joined_room["id"]
        assert summary["participantCount"] == 2
        assert summary["meetingId"] == MEETING_ID
        assert "createdAt" in summary


class TestSystemEndpoints:
    def test_config_lists_ice_servers(self, client, teacher_headers):
        response = client.get(f"{API}/config", headers=teacher_headers)

        body = response.json()
        assert body["iceTransportPolicy"] == "all"
        assert body["iceServers"][0]["urls"][0].startswith("stun:")

    def test_health_reports_degraded_without_database(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
