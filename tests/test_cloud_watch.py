"""Tests for the CloudWatch adapter, using an in-memory client."""

from botocore.exceptions import ClientError

from varzcollector.config import CloudWatchSettings
from varzcollector.historian.cloud_watch import (
    CloudWatchHistorian,
    dimensions_for,
    iso_timestamp,
)
from varzcollector.model import MetricRecord

SETTINGS = CloudWatchSettings(access_key_id="AKIA", secret_access_key="secret")


class FakeCloudWatchClient:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def put_metric_data(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error


def test_dimensions_explode_sequences():
    assert dimensions_for({"job": "DEA", "zones": ["a", "b"], "index": 1}) == [
        {"Name": "job", "Value": "DEA"},
        {"Name": "zones", "Value": "a"},
        {"Name": "zones", "Value": "b"},
        {"Name": "index", "Value": "1"},
    ]


def test_iso_timestamp():
    assert iso_timestamp(0) == "1970-01-01T00:00:00Z"
    assert iso_timestamp(1_700_000_000) == "2023-11-14T22:13:20Z"


async def test_put_metric_data():
    client = FakeCloudWatchClient()
    adapter = CloudWatchHistorian(SETTINGS, client=client)

    adapter.send_data(
        MetricRecord(
            key="healthy", value=1, timestamp=1_700_000_000, tags={"job": "DEA"}
        )
    )
    await adapter.close()

    assert client.calls == [
        {
            "Namespace": "CF/Collector",
            "MetricData": [
                {
                    "MetricName": "healthy",
                    "Value": 1.0,
                    "Timestamp": "2023-11-14T22:13:20Z",
                    "Dimensions": [{"Name": "job", "Value": "DEA"}],
                }
            ],
        }
    ]


async def test_client_errors_are_logged(log_messages):
    error = ClientError({"Error": {"Code": "Throttling", "Message": "slow"}}, "PutMetricData")
    adapter = CloudWatchHistorian(SETTINGS, client=FakeCloudWatchClient(error=error))

    adapter.send_data(MetricRecord(key="healthy", value=0, timestamp=1, tags={}))
    await adapter.close()

    assert any(m.startswith("collector.emit-cloudwatch.fail key=healthy") for m in log_messages)


async def test_non_numeric_value_is_dropped(log_messages):
    client = FakeCloudWatchClient()
    adapter = CloudWatchHistorian(SETTINGS, client=client)

    adapter.send_data(MetricRecord(key="x", value="lots", timestamp=1, tags={}))
    await adapter.close()

    assert client.calls == []
    assert any("collector.emit-cloudwatch.fail key=x" in m for m in log_messages)
