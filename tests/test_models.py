"""Tests for inbound event parsing and the transport acknowledgment."""

from __future__ import annotations

import json

import pytest

from chat_relay.relay.errors import MalformedRequestError
from chat_relay.relay.models import (
    Ack,
    AskEvent,
    ConnectEvent,
    DisconnectEvent,
    TransportEvent,
    UnknownEvent,
    parse_event,
)


def _raw(route_key: str, body=None) -> TransportEvent:
    return TransportEvent(connection_id="abc", route_key=route_key, body=body)


class TestLifecycleClassification:
    @pytest.mark.parametrize("route_key", ["$connect", "connect"])
    def test_connect(self, route_key):
        event = parse_event(_raw(route_key))
        assert isinstance(event, ConnectEvent)
        assert event.connection_id == "abc"

    @pytest.mark.parametrize("route_key", ["$disconnect", "disconnect"])
    def test_disconnect(self, route_key):
        assert isinstance(parse_event(_raw(route_key)), DisconnectEvent)

    @pytest.mark.parametrize("route_key", ["$default", "sendmessage", "ASK"])
    def test_unknown_route(self, route_key):
        event = parse_event(_raw(route_key, body="anything"))
        assert isinstance(event, UnknownEvent)
        assert event.route_key == route_key

    def test_event_id_carried_through(self):
        raw = TransportEvent(connection_id="abc", route_key="$connect", event_id="req-7")
        assert parse_event(raw).event_id == "req-7"


class TestAskBody:
    def test_valid_ask(self):
        body = json.dumps({"action": "ask", "token": "t0k", "data": "What is X?"})
        event = parse_event(_raw("ask", body))
        assert isinstance(event, AskEvent)
        assert event.token == "t0k"
        assert event.prompt == "What is X?"

    def test_bytes_body(self):
        event = parse_event(_raw("ask", b'{"token": "t", "data": "p"}'))
        assert event.prompt == "p"

    def test_unknown_fields_ignored(self):
        event = parse_event(_raw("ask", json.dumps({"token": "t", "data": "p", "extra": 1})))
        assert isinstance(event, AskEvent)

    @pytest.mark.parametrize("body", [
        None,
        "",
        "not json",
        "[1, 2]",
        "null",
        json.dumps({"data": "p"}),
        json.dumps({"token": "t"}),
        json.dumps({"token": "", "data": "p"}),
        json.dumps({"token": "t", "data": ""}),
        json.dumps({"token": "t", "data": 42}),
        json.dumps({"token": None, "data": "p"}),
    ])
    def test_malformed_bodies(self, body):
        with pytest.raises(MalformedRequestError):
            parse_event(_raw("ask", body))


class TestAck:
    def test_fixed_lambda_shape(self):
        assert Ack().to_lambda() == {
            "statusCode": 200,
            "headers": {"Access-Control-Allow-Origin": "*"},
            "body": "{}",
        }
