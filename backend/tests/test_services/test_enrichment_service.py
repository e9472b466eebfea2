"""Tests for the Gemini-backed enrichment service (retry policy, parsing, normalization)."""

import json

import httpx
import pytest

from app.clients.gemini import GeminiClient
from app.services.batch_scheduler import BatchScheduler, JobContext
from app.services.enrichment_service import (
    EnrichmentFailure,
    EnrichmentResult,
    EnrichmentService,
    build_prompt,
)
from app.services.entity_repository import NewJob


def _gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"role": "model", "parts": [{"text": text}]}}]}


class Recorder:
    """MockTransport handler replaying scripted responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, Exception):
            raise item
        return item


def _service(handler, max_attempts=3, api_key="test-key", fallback=""):
    client = GeminiClient(
        api_key=api_key,
        model="gemini-test",
        max_attempts=max_attempts,
        backoff_min=0,
        backoff_max=0,
        transport=httpx.MockTransport(handler),
    )
    return EnrichmentService(client=client, fallback_email_template=fallback)


OK_TEXT = """```json
{
  "management_company": "Acme HOA Management",
  "decision_maker_name": "Jane Doe",
  "email": "Jane@AcmeHOA.com",
  "phone": "(214) 555-0100",
  "city": "Dallas",
  "county": "Dallas County",
  "state": "TX",
  "zip_code": "75201"
}
```"""


class TestSuccess:
    @pytest.mark.asyncio
    async def test_parses_and_normalizes(self):
        handler = Recorder(httpx.Response(200, json=_gemini_body(OK_TEXT)))
        service = _service(handler)

        result = await service.enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentResult)
        assert result.management_company == "Acme HOA Management"
        assert result.email == "jane@acmehoa.com"
        assert result.county == "Dallas"
        assert result.state == "Texas"
        assert result.street_address is None
        assert result.has_useful_data is True

    @pytest.mark.asyncio
    async def test_request_shape(self):
        handler = Recorder(httpx.Response(200, json=_gemini_body("{}")))
        service = _service(handler)

        await service.enrich("OAKWOOD", "Dallas, TX")

        request = handler.requests[0]
        assert request.url.path.endswith("/models/gemini-test:generateContent")
        assert request.headers["x-goog-api-key"] == "test-key"
        body = json.loads(request.content)
        assert body["tools"] == [{"google_search": {}}]
        prompt = body["contents"][0]["parts"][0]["text"]
        assert '"OAKWOOD"' in prompt
        assert '"Dallas, TX"' in prompt

    @pytest.mark.asyncio
    async def test_unparseable_text_is_empty_result(self):
        handler = Recorder(
            httpx.Response(200, json=_gemini_body("I could not find anything about this community."))
        )

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentResult)
        assert result.is_empty

    @pytest.mark.asyncio
    async def test_no_candidates_is_empty_result(self):
        handler = Recorder(httpx.Response(200, json={"candidates": []}))

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentResult)
        assert result.is_empty

    @pytest.mark.asyncio
    async def test_placeholders_are_dropped(self):
        text = '{"management_company": "N/A", "email": "unknown", "phone": "Not found", "city": "Plano"}'
        handler = Recorder(httpx.Response(200, json=_gemini_body(text)))

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert result.populated_fields() == ["city"]
        assert result.has_useful_data is False


class TestRetryPolicy:
    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self):
        handler = Recorder(
            httpx.Response(503),
            httpx.Response(429),
            httpx.Response(200, json=_gemini_body(OK_TEXT)),
        )

        result = await _service(handler, max_attempts=3).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentResult)
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_return_failure(self):
        handler = Recorder(httpx.Response(503))

        result = await _service(handler, max_attempts=3).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentFailure)
        assert result.transient is True
        assert result.attempts == 3
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_retry_bound_is_configurable(self):
        handler = Recorder(httpx.Response(500))

        result = await _service(handler, max_attempts=1).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentFailure)
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_timeouts_are_retried(self):
        handler = Recorder(
            httpx.ReadTimeout("read timed out"),
            httpx.Response(200, json=_gemini_body(OK_TEXT)),
        )

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentResult)
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        handler = Recorder(httpx.Response(400, json={"error": {"message": "bad request"}}))

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentFailure)
        assert result.transient is False
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_without_calling(self):
        handler = Recorder(httpx.Response(200, json=_gemini_body(OK_TEXT)))

        result = await _service(handler, api_key="").enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentFailure)
        assert handler.requests == []

    @pytest.mark.asyncio
    async def test_blocked_prompt_is_failure(self):
        handler = Recorder(httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentFailure)
        assert "SAFETY" in result.reason


class TestFallbackEmail:
    @pytest.mark.asyncio
    async def test_disabled_by_default(self):
        handler = Recorder(httpx.Response(200, json=_gemini_body('{"city": "Dallas"}')))

        result = await _service(handler).enrich("Sunset Village", "Dallas, TX")

        assert result.email is None

    @pytest.mark.asyncio
    async def test_template_fills_missing_email(self):
        handler = Recorder(httpx.Response(200, json=_gemini_body('{"city": "Dallas"}')))

        result = await _service(handler, fallback="info@{slug}.com").enrich("Sunset Village", "Dallas, TX")

        assert result.email == "info@sunsetvillage.com"

    @pytest.mark.asyncio
    async def test_template_keeps_found_email(self):
        handler = Recorder(httpx.Response(200, json=_gemini_body(OK_TEXT)))

        result = await _service(handler, fallback="info@{slug}.com").enrich("OAKWOOD", "Dallas, TX")

        assert result.email == "jane@acmehoa.com"


def test_prompt_mentions_omission_rule():
    prompt = build_prompt("OAKWOOD", "Dallas, TX")
    assert "omit it" in prompt
    assert "Never invent placeholder values" in prompt


class TestMalformedResponses:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            ["unexpected"],
            "just a string",
            {"candidates": ["not a dict"]},
            {"candidates": "nope"},
        ],
    )
    async def test_bad_shapes_become_failures(self, body):
        handler = Recorder(httpx.Response(200, json=body))

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentFailure)
        assert "Unexpected" in result.reason

    @pytest.mark.asyncio
    async def test_odd_feedback_without_candidates_is_empty(self):
        handler = Recorder(httpx.Response(200, json={"promptFeedback": "blocked?"}))

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentResult)
        assert result.is_empty

    @pytest.mark.asyncio
    async def test_list_body_is_rejected_without_retry(self):
        handler = Recorder(httpx.Response(200, json=["unexpected"]))

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentFailure)
        assert result.transient is False
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_non_text_parts_are_ignored(self):
        body = {"candidates": [{"content": {"parts": [{"text": 5}, "x", {"text": '{"city": "Plano"}'}]}}]}
        handler = Recorder(httpx.Response(200, json=body))

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert result.city == "Plano"

    @pytest.mark.asyncio
    async def test_decoding_errors_are_retried(self):
        handler = Recorder(
            httpx.DecodingError("bad gzip"),
            httpx.Response(200, json=_gemini_body(OK_TEXT)),
        )

        result = await _service(handler).enrich("OAKWOOD", "Dallas, TX")

        assert isinstance(result, EnrichmentResult)
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_unexpected_client_error_is_failure(self):
        class BrokenClient:
            max_attempts = 3

            async def generate_text(self, prompt):
                raise KeyError("parts")

        result = await EnrichmentService(client=BrokenClient(), fallback_email_template="").enrich(
            "OAKWOOD", "Dallas, TX"
        )

        assert isinstance(result, EnrichmentFailure)
        assert result.transient is False

    @pytest.mark.asyncio
    async def test_one_malformed_answer_does_not_stop_the_job(
        self, fake_repo, fake_notifier, sleeps
    ):
        def handler(request: httpx.Request) -> httpx.Response:
            if "Bad One" in json.loads(request.content)["contents"][0]["parts"][0]["text"]:
                return httpx.Response(200, json=["unexpected"])
            return httpx.Response(200, json=_gemini_body(OK_TEXT))

        names = ["Good A", "Bad One", "Good B", "Good C"]
        job_id = await fake_repo.create_job(
            NewJob(owner_id="user-1", context_location="Dallas, TX", entities=names)
        )
        scheduler = BatchScheduler(
            fake_repo,
            _service(handler),
            fake_notifier,
            batch_size=1,
            delay_seconds=0,
            sleep=sleeps,
        )

        summary = await scheduler.run(
            JobContext(job_id=job_id, context_location="Dallas, TX", entities=names)
        )

        assert summary.aborted is False
        assert summary.failed_names == ["Bad One"]
        assert fake_repo.names() == ["Good A", "Good B", "Good C"]
        assert fake_repo.status_updates[-1][1] == "completed"
