"""Tests for bus message decoding and the NATS bus wrapper."""

import pytest

from varzcollector.bus import NatsMessageBus, decode_message


def test_decode_object():
    assert decode_message(b'{"type": "Router", "index": 0}') == {
        "type": "Router",
        "index": 0,
    }


def test_empty_body_is_empty_object():
    assert decode_message(b"") == {}


@pytest.mark.parametrize("data", [b"[1, 2]", b'"text"', b"{broken"])
def test_non_object_bodies_raise(data):
    with pytest.raises(ValueError):
        decode_message(data)


def test_client_requires_connection():
    bus = NatsMessageBus(["nats://127.0.0.1:4222"])
    with pytest.raises(RuntimeError):
        bus.client
