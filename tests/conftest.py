"""Shared fixtures: a recording fake upstream and configured apps."""

from __future__ import annotations

from typing import Callable

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from gateway.api import create_app
from gateway.api.config import Settings
from gateway.core.dispatch import Dispatcher
from gateway.core.providers import ProviderSettings, build_registry
from tests.fakes import FakeUpstream, configured_provider_settings


@pytest.fixture
def upstream() -> FakeUpstream:
    """Fake provider endpoint."""
    return FakeUpstream()


@pytest.fixture
def provider_settings() -> ProviderSettings:
    """Provider settings with every provider configured."""
    return configured_provider_settings()


@pytest.fixture
def make_app(upstream: FakeUpstream) -> Callable[..., FastAPI]:
    """Factory for apps wired to the fake upstream."""

    def _make(provider_settings: ProviderSettings | None = None) -> FastAPI:
        return create_app(
            settings=Settings(_env_file=None, log_level="DEBUG"),
            provider_settings=provider_settings or configured_provider_settings(),
            transport=upstream.transport,
        )

    return _make


@pytest.fixture
def app(make_app: Callable[..., FastAPI], provider_settings: ProviderSettings) -> FastAPI:
    return make_app(provider_settings)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Test client fixture."""
    return TestClient(app)


@pytest.fixture
def dispatcher(upstream: FakeUpstream, provider_settings: ProviderSettings) -> Dispatcher:
    """Dispatcher wired to the fake upstream."""
    return Dispatcher(
        build_registry(provider_settings),
        provider_settings,
        httpx.AsyncClient(transport=upstream.transport),
    )
