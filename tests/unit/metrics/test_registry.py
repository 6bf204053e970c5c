"""Unit tests for the Prometheus metrics helpers."""

from __future__ import annotations

import pytest
from prometheus_client import REGISTRY

from onkyo_sync.metrics import registry
from onkyo_sync.transport.receiver_transport import ReceiverTransport
from tests.helpers.catalog_data import RECEIVER_HOST, RECEIVER_MODEL
from tests.helpers.fake_receiver import FakeConnectionFactory


def sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestRecorders:
    """Tests for individual metric recorders."""

    def test_command_outcomes_counted_separately(self):
        registry.record_command("10.0.0.1:60128", "system-power", "success")
        registry.record_command("10.0.0.1:60128", "system-power", "success")
        registry.record_command("10.0.0.1:60128", "system-power", "rejected")

        labels = {"device_id": "10.0.0.1:60128", "verb": "system-power"}
        assert sample("onkyo_command_sent_total", outcome="success", **labels) == 2
        assert sample("onkyo_command_sent_total", outcome="rejected", **labels) == 1

    def test_connection_state_is_one_hot(self):
        registry.record_connection_state("10.0.0.2:60128", "connecting")
        registry.record_connection_state("10.0.0.2:60128", "connected")

        values = {
            state: sample("onkyo_connection_state", device_id="10.0.0.2:60128", state=state)
            for state in registry.CONNECTION_STATES
        }
        assert values == {"disconnected": 0, "connecting": 0, "connected": 1, "reconnecting": 0}

    def test_latency_histogram(self):
        registry.record_command_latency("10.0.0.3:60128", 0.02)
        assert sample("onkyo_command_latency_seconds_count", device_id="10.0.0.3:60128") == 1


class TestTransportMetrics:
    """Tests for metrics recorded by the transport."""

    @pytest.mark.asyncio
    async def test_status_event_and_command_counted(
        self,
        transport: ReceiverTransport,
        connection_factory: FakeConnectionFactory,
    ):
        _ = await transport.connect(RECEIVER_HOST, RECEIVER_MODEL)
        before = sample("onkyo_status_event_total", device_id=transport.device_id, verb="audio-muting")

        _ = await transport.send_command("main", "audio-muting", "on")

        after = sample("onkyo_status_event_total", device_id=transport.device_id, verb="audio-muting")
        assert after == before + 1
        assert sample(
            "onkyo_command_sent_total",
            device_id=transport.device_id,
            verb="audio-muting",
            outcome="success",
        ) >= 1
