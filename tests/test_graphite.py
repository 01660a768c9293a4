"""Tests for the Graphite line-protocol adapter."""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from varzcollector.exceptions import MetricFormatError
from varzcollector.historian.graphite import GraphiteHistorian, metric_path
from varzcollector.model import MetricRecord

NOW = 1_700_000_123


class FakeConnection:
    def __init__(self):
        self.lines = []

    async def connect(self):
        pass

    def send(self, line):
        self.lines.append(line)
        return True

    async def close(self):
        pass


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def graphite(connection):
    return GraphiteHistorian("graphite", 2003, connection=connection, clock=lambda: NOW)


def _record(key="router.responses", value=10, timestamp=1_600_000_000, **tags):
    base = {"deployment": "CF", "job": "Router", "index": 0, "ip": "1.2.3.4"}
    base.update(tags)
    return MetricRecord(key=key, value=value, timestamp=timestamp, tags=base)


class TestMetricPath:
    def test_router_component_and_status_go_in_path(self):
        record = _record(component="CC", status="2xx")
        assert metric_path(record) == "CF.Router.0.1-2-3-4.router.responses.CC.2xx"

    def test_router_requests_component_only(self):
        record = _record(key="router.requests", component="app")
        assert metric_path(record) == "CF.Router.0.1-2-3-4.router.requests.app"

    def test_other_metrics_keep_component_as_tag(self):
        record = _record(key="router.latency.1m", component="CC")
        assert metric_path(record) == "CF.Router.0.1-2-3-4.router.latency.1m"

    def test_missing_ip_renders_nil(self):
        record = MetricRecord(
            key="healthy",
            value=1,
            tags={"deployment": "CF", "job": "DEA", "index": 2},
        )
        assert metric_path(record) == "CF.DEA.2.nil.healthy"

    @pytest.mark.parametrize("missing", ["deployment", "job", "index"])
    def test_missing_required_tag_raises(self, missing):
        record = _record()
        tags = dict(record.tags)
        del tags[missing]
        with pytest.raises(MetricFormatError):
            metric_path(MetricRecord(key="foo", value=1, tags=tags))

    def test_missing_key_raises(self):
        with pytest.raises(MetricFormatError):
            metric_path(_record(key=None))


class TestSendData:
    def test_line_format(self, graphite, connection):
        graphite.send_data(_record(component="CC", status="2xx"))
        assert connection.lines == [
            "CF.Router.0.1-2-3-4.router.responses.CC.2xx 10 1600000000\n"
        ]

    @pytest.mark.parametrize("timestamp", [None, 123, "abc", 99_999_999_999, 2_000_000_000])
    def test_malformed_timestamp_uses_now(self, graphite, connection, timestamp):
        graphite.send_data(_record(key="foo", timestamp=timestamp))
        assert connection.lines == [f"CF.Router.0.1-2-3-4.foo 10 {NOW}\n"]

    @pytest.mark.parametrize("value", ["10", None, True, [1]])
    def test_non_numeric_value_is_dropped(self, graphite, connection, log_messages, value):
        graphite.send_data(_record(key="foo", value=value))

        assert connection.lines == []
        assert any(
            m.startswith("collector.emit-graphite.fail: Value is not a float or int")
            for m in log_messages
        )

    def test_missing_fields_logged_and_dropped(self, graphite, connection, log_messages):
        graphite.send_data(MetricRecord(key="foo", value=1, tags={}))

        assert connection.lines == []
        assert any(
            "collector.create-graphite-key.fail: Could not create metrics name" in m
            for m in log_messages
        )

    def test_float_values(self, graphite, connection):
        graphite.send_data(_record(key="cpu", value=0.25))
        assert connection.lines == ["CF.Router.0.1-2-3-4.cpu 0.25 1600000000\n"]


@given(timestamp=st.integers(min_value=1_000_000_000, max_value=1_999_999_999))
def test_valid_epoch_timestamps_are_kept(timestamp):
    connection = FakeConnection()
    graphite = GraphiteHistorian("g", 1, connection=connection, clock=lambda: NOW)

    graphite.send_data(_record(key="foo", timestamp=timestamp))

    assert connection.lines == [f"CF.Router.0.1-2-3-4.foo 10 {timestamp}\n"]
