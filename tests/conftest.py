"""Shared fixtures for business-case-ai tests."""

import json
import logging
import random

import httpx
import pytest

from business_case_ai.config import Settings
from business_case_ai.core.llm import TransportClient

TEST_API_KEY = "sk-test-0123456789abcdefghijkl"


def sse(*events):
    """Render events as a server-sent event body ending with [DONE]."""
    lines = [f"data: {json.dumps(event)}\n\n" for event in events]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode("utf-8")


def text_stream(text):
    """SSE body carrying *text* as a single output_text delta."""
    return sse({"type": "response.output_text.delta", "delta": text})


class FakeClock:
    """Monotonic clock advanced explicitly by tests."""

    def __init__(self, start=0.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def settings(tmp_path):
    """Settings isolated to tmp_path with short timeouts."""
    return Settings(
        api_key=TEST_API_KEY,
        model="gpt-5-mini",
        max_output_tokens=8000,
        min_output_tokens=256,
        timeout=30,
        max_retry_time=60,
        timeout_increment=30,
        cache_dir=tmp_path / "cache",
        data_dir=tmp_path / "data",
    )


@pytest.fixture
def make_transport(settings):
    """Factory for a TransportClient backed by an httpx.MockTransport handler."""
    created = []

    def factory(handler, config=None, **kwargs):
        sleeps = kwargs.pop("sleeps", [])
        client = TransportClient(
            config or settings,
            http_client=httpx.Client(transport=httpx.MockTransport(handler)),
            sleep_func=kwargs.pop("sleep_func", sleeps.append),
            rng=kwargs.pop("rng", random.Random(0)),
            **kwargs,
        )
        created.append(client)
        return client

    yield factory

    for client in created:
        client._http_client.close()


@pytest.fixture
def case_inputs():
    return {
        "company_name": "Acme Corp",
        "company_size": "$500M-$2B",
        "industry": "Manufacturing",
        "job_title": "Treasurer",
        "pain_points": ["manual_processes", "poor_visibility"],
        "business_objective": "Improve cash visibility",
        "implementation_timeline": "6 months",
        "budget_range": "$100K-$250K",
        "hours_reconciliation": 10,
        "hours_cash_positioning": 8,
        "num_banks": 5,
        "ftes": 3,
    }


@pytest.fixture(autouse=True)
def restore_package_logger():
    """Undo handlers and levels installed by Settings.setup_logging."""
    logger = logging.getLogger("business_case_ai")
    handlers = list(logger.handlers)
    level = logger.level
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
