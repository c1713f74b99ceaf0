import asyncio

import pytest

from hybrid_intel.backends.base import InternalResponse, WebResponse
from hybrid_intel.models.intent import DetectedIntent
from hybrid_intel.models.report import InternalResult, WebResult
from hybrid_intel.models.source import InternalSource, InternalSourceType, WebSource


class FakeInternalProvider:
    name = "fake-internal"

    def __init__(self, response=None, error=None, started=None, release=None):
        self.response = response or InternalResponse(content="")
        self.error = error
        self.started = started
        self.release = release
        self.calls = []

    async def query(self, text, history, intent):
        self.calls.append((text, history, intent))
        if self.started is not None:
            self.started.set()
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.response


class FakeWebProvider:
    name = "fake-web"

    def __init__(self, response=None, error=None, configured=True, started=None, release=None):
        self.response = response or WebResponse(content="")
        self.error = error
        self.configured = configured
        self.started = started
        self.release = release
        self.calls = []

    def is_configured(self):
        return self.configured

    async def query(self, text, history):
        self.calls.append((text, history))
        if self.started is not None:
            self.started.set()
        if self.release is not None:
            await self.release.wait()
        if self.error is not None:
            raise self.error
        return self.response


class FakeGenerator:
    name = "fake-generator"

    def __init__(self, reply="", error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def fake_internal_provider():
    return FakeInternalProvider


@pytest.fixture
def fake_web_provider():
    return FakeWebProvider


@pytest.fixture
def fake_generator():
    return FakeGenerator


@pytest.fixture
def steel_internal():
    return InternalResult(
        content="Steel prices rose 4% this quarter.",
        sources=(
            InternalSource(
                name="Steel Report",
                type=InternalSourceType.BEROE,
                report_id="beroe-steel-q4",
                category="Metals",
                summary="HRC prices up 4% quarter on quarter.",
            ),
        ),
    )


@pytest.fixture
def reuters_web():
    return WebResult(
        content="Reuters reports strong demand from automakers. Mills are running near capacity.",
        sources=(
            WebSource(name="Reuters", url="https://reuters.com/a", domain="reuters.com"),
        ),
    )


@pytest.fixture
def portfolio_intent():
    return DetectedIntent(category="portfolio_overview")
