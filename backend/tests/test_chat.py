"""Tests for the WebSocket chat transport with multi-client support.

On connect the backend assigns the connection id and display name:
1. {type: "identity-assigned", connectionId, displayName}
2. {type: "global-history", messages}
3. {type: "session-list", sessions} (snapshot for the newcomer)
4. {type: "session-list", sessions} (the update sent to everyone)
"""
import pytest
from fastapi import WebSocketDisconnect
from fastapi.testclient import TestClient

from chatrelay.main import app


@pytest.fixture
def client():
    """TestClient entered as a context manager.

    All sockets must share one event loop because outboxes are asyncio
    queues; entering the client gives every session the same portal.
    """
    with TestClient(app) as test_client:
        yield test_client


def receive_identity(ws):
    """Helper to receive the connect snapshots and return the identity frame."""
    identity = ws.receive_json()
    assert identity["type"] == "identity-assigned"
    assert identity["connectionId"]
    assert identity["displayName"]

    history = ws.receive_json()
    assert history["type"] == "global-history"

    for _ in range(2):
        sessions = ws.receive_json()
        assert sessions["type"] == "session-list"
    return identity


def receive_join(ws, identity):
    """Helper for the frames an existing client gets when someone connects."""
    joined = ws.receive_json()
    assert joined["type"] == "user-joined"
    assert joined["displayName"] == identity["displayName"]

    sessions = ws.receive_json()
    assert sessions["type"] == "session-list"
    return sessions


def test_health(api_client):
    response = api_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_two_clients_appear_in_session_list(client):
    with client.websocket_connect("/ws/chat") as ws1:
        id1 = receive_identity(ws1)

        with client.websocket_connect("/ws/chat") as ws2:
            id2 = receive_identity(ws2)
            sessions = receive_join(ws1, id2)

            ids = {s["connectionId"] for s in sessions["sessions"]}
            assert ids == {id1["connectionId"], id2["connectionId"]}


def test_history_delivered_to_late_joiner(client):
    with client.websocket_connect("/ws/chat") as ws1:
        receive_identity(ws1)
        ws1.send_json({"type": "send-global-message", "text": "First message"})
        ws1.receive_json()
        ws1.send_json({"type": "send-global-message", "text": "Second message"})
        ws1.receive_json()

        with client.websocket_connect("/ws/chat") as ws2:
            ws2.receive_json()  # identity-assigned
            history = ws2.receive_json()
            assert history["type"] == "global-history"
            assert [m["text"] for m in history["messages"]] == [
                "First message", "Second message"
            ]


def test_malformed_frames_get_no_reply(client):
    with client.websocket_connect("/ws/chat") as ws:
        receive_identity(ws)

        ws.send_text("not json")
        ws.send_bytes(b'{"type": "send-global-message", "text": "binary"}')
        ws.send_json({"type": "bogus"})
        ws.send_json({"type": "send-private-message", "roomId": "nope-nope", "text": "x"})
        ws.send_json({"type": "start-private-chat", "targetConnectionId": "nobody"})

        # The next frame is the reply to a valid command
        ws.send_json({"type": "send-global-message", "text": "still here"})
        reply = ws.receive_json()
        assert reply["type"] == "new-global-message"
        assert reply["message"]["text"] == "still here"


def test_binary_frame_keeps_connection_open(client):
    with client.websocket_connect("/ws/chat") as ws1:
        receive_identity(ws1)

        with client.websocket_connect("/ws/chat") as ws2:
            id2 = receive_identity(ws2)
            receive_join(ws1, id2)

            ws2.send_bytes(b'{"type": "send-global-message", "text": "x"}')
            ws2.send_json({"type": "send-global-message", "text": "after"})

            frame = ws1.receive_json()
            assert frame["type"] == "new-global-message"
            assert frame["message"]["text"] == "after"


def test_foreign_origin_is_rejected(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws/chat", headers={"origin": "http://evil.example"}):
            pass
    assert exc_info.value.code == 1008


def test_allowed_origin_is_accepted(client):
    with client.websocket_connect("/ws/chat", headers={"origin": "http://localhost:3000"}) as ws:
        receive_identity(ws)


def test_global_and_private_chat_scenario(client):
    """Global broadcast, private room isolation and disconnect notifications."""
    with client.websocket_connect("/ws/chat") as ws2:
        id2 = receive_identity(ws2)

        with client.websocket_connect("/ws/chat") as ws3:
            id3 = receive_identity(ws3)
            receive_join(ws2, id3)

            with client.websocket_connect("/ws/chat") as ws1:
                id1 = receive_identity(ws1)
                receive_join(ws2, id1)
                receive_join(ws3, id1)

                # Global message reaches everyone
                ws1.send_json({"type": "send-global-message", "text": "hello"})
                for ws in (ws1, ws2, ws3):
                    frame = ws.receive_json()
                    assert frame["type"] == "new-global-message"
                    assert frame["message"]["text"] == "hello"
                    assert frame["message"]["author"] == id1["displayName"]

                # Private chat reaches both members with an empty log
                ws1.send_json({
                    "type": "start-private-chat",
                    "targetConnectionId": id2["connectionId"],
                })
                started1 = ws1.receive_json()
                started2 = ws2.receive_json()
                assert started1["type"] == started2["type"] == "private-chat-started"
                assert started1["roomId"] == started2["roomId"]
                assert started1["messages"] == []
                room_id = started1["roomId"]

                # Private reply reaches only the pair
                ws2.send_json({"type": "send-private-message", "roomId": room_id, "text": "hi"})
                for ws in (ws1, ws2):
                    frame = ws.receive_json()
                    assert frame["type"] == "new-private-message"
                    assert frame["message"]["text"] == "hi"
                    assert frame["message"]["roomId"] == room_id

                # ws3's next frame is its own global message, not the private one
                ws3.send_json({"type": "send-global-message", "text": "ping"})
                for ws in (ws3, ws1, ws2):
                    frame = ws.receive_json()
                    assert frame["type"] == "new-global-message"
                    assert frame["message"]["text"] == "ping"

            # ws1 has disconnected
            for ws in (ws2, ws3):
                left = ws.receive_json()
                assert left["type"] == "user-left"
                assert left["displayName"] == id1["displayName"]

                sessions = ws.receive_json()
                assert sessions["type"] == "session-list"
                ids = {s["connectionId"] for s in sessions["sessions"]}
                assert ids == {id2["connectionId"], id3["connectionId"]}
