"""Tests for the batched DataDog adapter."""

from unittest.mock import AsyncMock, patch

import orjson
import pytest

from varzcollector.config import DataDogSettings
from varzcollector.historian.datadog import DataDogHistorian, render_tags
from varzcollector.model import MetricRecord


class Clock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def _record(key="mem_bytes", value=1, timestamp=1_700_000_000, **tags):
    return MetricRecord(key=key, value=value, timestamp=timestamp, tags=tags)


def _mock_post(mock_post, status=202, text="{}"):
    response = AsyncMock()
    response.status = status
    response.text = AsyncMock(return_value=text)
    mock_post.return_value.__aenter__.return_value = response
    return response


def test_render_tags_explodes_sequences():
    assert render_tags({"job": "DEA", "zones": ["a", "b"], "index": 0}) == [
        "job:DEA",
        "zones:a",
        "zones:b",
        "index:0",
    ]


def test_point_shape():
    datadog = DataDogHistorian(DataDogSettings(api_key="k"), clock=Clock())
    point = datadog.to_point(_record(job="DEA"))

    assert point == {
        "metric": "cf.collector.mem_bytes",
        "points": [[1_700_000_000, 1]],
        "type": "gauge",
        "tags": ["job:DEA"],
    }


def test_missing_timestamp_uses_now():
    datadog = DataDogHistorian(DataDogSettings(api_key="k"), clock=Clock(1234.5))
    assert datadog.to_point(_record(timestamp=None))["points"] == [[1234, 1]]


async def test_buffers_until_data_threshold():
    clock = Clock()
    settings = DataDogSettings(api_key="secret", data_threshold=3)
    datadog = DataDogHistorian(settings, clock=clock)

    with patch("aiohttp.ClientSession.post") as mock_post:
        _mock_post(mock_post)

        datadog.send_data(_record(key="a"))
        datadog.send_data(_record(key="b"))
        assert datadog.buffered == 2
        mock_post.assert_not_called()

        datadog.send_data(_record(key="c"))
        assert datadog.buffered == 0
        await datadog.close()

    mock_post.assert_called_once()
    args, kwargs = mock_post.call_args
    assert args[0] == "https://app.datadoghq.com/api/v1/series"
    assert kwargs["params"] == {"api_key": "secret"}
    assert kwargs["headers"] == {"Content-type": "application/json"}
    body = orjson.loads(kwargs["data"])
    assert [s["metric"] for s in body["series"]] == [
        "cf.collector.a",
        "cf.collector.b",
        "cf.collector.c",
    ]


async def test_flushes_when_time_threshold_passes():
    clock = Clock(1000.0)
    settings = DataDogSettings(
        api_key="k", data_threshold=1000, time_threshold_in_seconds=10
    )
    datadog = DataDogHistorian(settings, clock=clock)

    with patch("aiohttp.ClientSession.post") as mock_post:
        _mock_post(mock_post)

        datadog.send_data(_record())
        assert datadog.buffered == 1

        clock.now = 1010.0
        datadog.send_data(_record())
        assert datadog.buffered == 0
        await datadog.close()

    mock_post.assert_called_once()
    assert len(orjson.loads(mock_post.call_args.kwargs["data"])["series"]) == 2


async def test_success_is_logged(log_messages):
    datadog = DataDogHistorian(DataDogSettings(api_key="k", data_threshold=1), clock=Clock())

    with patch("aiohttp.ClientSession.post") as mock_post:
        _mock_post(mock_post, status=202)
        datadog.send_data(_record())
        await datadog.close()

    assert any(
        m.startswith("collector.emit-datadog.success number_of_metrics=1 lag_in_seconds=0")
        for m in log_messages
    )


@pytest.mark.parametrize("status", [400, 403, 500])
async def test_failed_batch_is_not_retried(log_messages, status):
    datadog = DataDogHistorian(DataDogSettings(api_key="k", data_threshold=1), clock=Clock())

    with patch("aiohttp.ClientSession.post") as mock_post:
        _mock_post(mock_post, status=status, text="nope")
        datadog.send_data(_record())
        await datadog.close()

    assert datadog.buffered == 0
    assert mock_post.call_count == 1
    assert any(m.startswith("collector.emit-datadog.fail") for m in log_messages)


async def test_close_posts_partial_batch():
    settings = DataDogSettings(api_key="k", data_threshold=1000)
    datadog = DataDogHistorian(settings, clock=Clock())

    with patch("aiohttp.ClientSession.post") as mock_post:
        _mock_post(mock_post)
        datadog.send_data(_record(key="a"))
        datadog.send_data(_record(key="b"))
        mock_post.assert_not_called()

        await datadog.close()

    assert datadog.buffered == 0
    mock_post.assert_called_once()
    body = orjson.loads(mock_post.call_args.kwargs["data"])
    assert [s["metric"] for s in body["series"]] == ["cf.collector.a", "cf.collector.b"]


async def test_close_with_empty_buffer_posts_nothing():
    datadog = DataDogHistorian(DataDogSettings(api_key="k"), clock=Clock())

    with patch("aiohttp.ClientSession.post") as mock_post:
        _mock_post(mock_post)
        await datadog.close()

    mock_post.assert_not_called()


async def test_error_body_is_read_leniently():
    datadog = DataDogHistorian(DataDogSettings(api_key="k", data_threshold=1), clock=Clock())

    with patch("aiohttp.ClientSession.post") as mock_post:
        response = _mock_post(mock_post, status=500, text="�bad")
        datadog.send_data(_record())
        await datadog.close()

    response.text.assert_awaited_once_with(errors="replace")
