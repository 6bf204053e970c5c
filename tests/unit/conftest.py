"""Shared fixtures for unit tests.

Transports are wired to in-memory fake connections; no sockets are opened.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio

from onkyo_sync.catalog import Catalog
from onkyo_sync.inputs import InputTable, resolve_inputs
from onkyo_sync.state import ReceiverState
from onkyo_sync.transport.receiver_transport import ReceiverTransport
from onkyo_sync.transport.retry_policy import RetryPolicy, TimeoutConfig
from tests.helpers.catalog_data import RECEIVER_MODEL, make_catalog_document
from tests.helpers.fake_receiver import FakeConnectionFactory


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.from_document(make_catalog_document(), source="<test>")


@pytest.fixture
def input_table(catalog: Catalog) -> InputTable:
    return resolve_inputs(catalog, RECEIVER_MODEL)


@pytest.fixture
def state() -> ReceiverState:
    return ReceiverState()


@pytest.fixture
def connection_factory() -> FakeConnectionFactory:
    return FakeConnectionFactory()


@pytest.fixture
def fast_timeouts() -> TimeoutConfig:
    return TimeoutConfig(connect_timeout_seconds=0.1, command_timeout_seconds=0.05)


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(base_delay_seconds=0.001, max_delay_seconds=0.005, jitter_factor=0.0)


@pytest_asyncio.fixture
async def transport(
    catalog: Catalog,
    connection_factory: FakeConnectionFactory,
    fast_timeouts: TimeoutConfig,
    fast_retry: RetryPolicy,
) -> AsyncIterator[ReceiverTransport]:
    """Disconnected transport wired to fake connections; disconnected again on teardown."""
    receiver_transport = ReceiverTransport(
        catalog,
        timeout_config=fast_timeouts,
        connection_factory=connection_factory,
        retry_policy=fast_retry,
    )
    yield receiver_transport
    await receiver_transport.disconnect()
