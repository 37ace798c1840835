import pytest
from starlette.websockets import WebSocketDisconnect

from core.users import create_user
from models import Message, Role
from routers.messaging.assignments import assign
from routers.messaging.ledger import get_balance


class TestHandshake:
    """Credential checks before the socket is accepted"""

    @pytest.mark.parametrize("query", ["", "?token=", "?token=invalid"])
    def test_bad_token_closes_with_policy_violation(self, client, users, query):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws{query}"):
                pass
        assert exc_info.value.code == 1008

    def test_unknown_user_is_rejected(self, client, users, token_for):
        token = token_for("ghost", Role.FAN)
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws?token={token}"):
                pass
        assert exc_info.value.code == 1008

    def test_inactive_user_is_rejected(self, client, test_db, token_for):
        banned = create_user(test_db, username="banned", email="banned@example.com", role=Role.FAN, is_active=False)
        test_db.commit()
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"/ws?token={token_for(banned.id, Role.FAN)}"):
                pass
        assert exc_info.value.code == 1008

    def test_connection_registers_and_unregisters(self, app, client, users, token_for):
        with client.websocket_connect(f"/ws?token={token_for(users.fan, Role.FAN)}"):
            assert users.fan in app.state.registry
            assert client.get("/health").json()["connections"] == 1
        assert users.fan not in app.state.registry


class TestLiveChat:
    """chat_message frames over a real socket"""

    def test_fan_to_model_with_worker(self, client, users, token_for, test_db):
        assign(test_db, users.worker1, users.model)
        test_db.commit()

        with client.websocket_connect(f"/ws?token={token_for(users.model, Role.MODEL)}") as model_ws, \
                client.websocket_connect(f"/ws?token={token_for(users.worker1, Role.WORKER)}") as worker_ws, \
                client.websocket_connect(f"/ws?token={token_for(users.fan, Role.FAN)}") as fan_ws:
            fan_ws.send_json({"type": "chat_message", "receiverId": users.model, "content": "hi there"})

            ack = fan_ws.receive_json()
            to_model = model_ws.receive_json()
            to_worker = worker_ws.receive_json()

        assert ack["type"] == "message_sent"
        assert ack["message"]["content"] == "hi there"
        assert to_model == {"type": "new_message", "message": ack["message"]}
        assert to_worker == to_model

        test_db.expire_all()
        assert test_db.query(Message).count() == 1
        assert get_balance(test_db, users.fan) == 4

    def test_model_reply_reaches_fan(self, client, users, token_for, test_db):
        with client.websocket_connect(f"/ws?token={token_for(users.fan, Role.FAN)}") as fan_ws, \
                client.websocket_connect(f"/ws?token={token_for(users.model, Role.MODEL)}") as model_ws:
            model_ws.send_json({"type": "chat_message", "receiverId": users.fan, "content": "welcome"})

            ack = model_ws.receive_json()
            incoming = fan_ws.receive_json()

        assert ack["type"] == "message_sent"
        assert incoming["type"] == "new_message"
        assert incoming["message"]["gemCost"] == 0
        test_db.expire_all()
        assert get_balance(test_db, users.fan) == 5

    def test_invalid_frame_keeps_connection_open(self, client, users, token_for, test_db):
        with client.websocket_connect(f"/ws?token={token_for(users.fan, Role.FAN)}") as fan_ws:
            fan_ws.send_text("definitely not json")
            error = fan_ws.receive_json()

            fan_ws.send_json({"type": "chat_message", "receiverId": users.model, "content": "retry"})
            ack = fan_ws.receive_json()

        assert error["type"] == "error"
        assert error["error"] == "invalid_frame"
        assert ack["type"] == "message_sent"
        test_db.expire_all()
        assert test_db.query(Message).count() == 1
