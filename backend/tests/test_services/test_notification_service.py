"""Tests for the completion email."""

import json

import httpx
import pytest

from app.clients.sendgrid import SendGridClient
from app.services.notification_service import (
    MAX_LISTED_NAMES,
    CompletionNotifier,
    JobSummary,
    render_subject,
    render_text,
)


def _summary(**kwargs) -> JobSummary:
    defaults = dict(
        total_count=4,
        processed_count=2,
        skipped_count=1,
        failed_count=1,
        skipped_names=["OAKWOOD"],
        failed_names=["SUNSET"],
    )
    defaults.update(kwargs)
    return JobSummary(**defaults)


def _notifier(handler, api_key="sg-test"):
    client = SendGridClient(
        api_key=api_key,
        from_email="outreach@example.com",
        transport=httpx.MockTransport(handler),
    )
    return CompletionNotifier(sender=client)


class TestRendering:
    def test_success_rate(self):
        assert _summary().success_rate == 50
        assert JobSummary(total_count=0).success_rate == 0

    def test_text_lists_names_and_counts(self):
        text = render_text(_summary())
        assert "Total Communities: 4" in text
        assert "Skipped (already in database): 1" in text
        assert "  - OAKWOOD" in text
        assert "  - SUNSET" in text

    def test_long_lists_are_truncated(self):
        names = [f"C{i}" for i in range(MAX_LISTED_NAMES + 5)]
        text = render_text(_summary(failed_names=names, failed_count=len(names)))
        assert "... and 5 more" in text

    def test_subject_for_abort(self):
        assert render_subject(_summary()) == "HOA Data Enrichment Complete"
        assert render_subject(_summary(aborted=True)) == "HOA Data Enrichment Stopped"


class TestCompletionNotifier:
    @pytest.mark.asyncio
    async def test_sends_once(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(202)

        sent = await _notifier(handler).notify("owner@example.com", _summary())

        assert sent is True
        assert len(requests) == 1
        payload = json.loads(requests[0].content)
        assert payload["personalizations"][0]["to"][0]["email"] == "owner@example.com"
        assert payload["subject"] == "HOA Data Enrichment Complete"
        assert requests[0].headers["Authorization"] == "Bearer sg-test"

    @pytest.mark.asyncio
    async def test_failure_is_swallowed_and_not_retried(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(503)

        sent = await _notifier(handler).notify("owner@example.com", _summary())

        assert sent is False
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_transport_error_is_swallowed(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        assert await _notifier(handler).notify("owner@example.com", _summary()) is False

    @pytest.mark.asyncio
    async def test_without_api_key_nothing_is_sent(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(202)

        assert await _notifier(handler, api_key="").notify("owner@example.com", _summary()) is False
        assert requests == []

    @pytest.mark.asyncio
    async def test_without_recipient_nothing_is_sent(self):
        def handler(request):
            raise AssertionError("should not be called")

        assert await _notifier(handler).notify(None, _summary()) is False
