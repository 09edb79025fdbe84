"""
Unit tests for multi-provider generation: provider ordering, attempt
bookkeeping, schema fallback and the failure types that leave the
orchestrator.
"""

import pytest

from contentops.core.exceptions import ValidationError
from contentops.services.ai.base import (
    ContentPolicyViolationError,
    ErrorKind,
    InvalidResponseError,
    ProviderAuthError,
    ProviderTimeoutError
)
from contentops.services.ai.health import ProviderHealthTracker
from contentops.services.ai.models import AllProvidersExhaustedError, SchemaFallbackFailedError
from contentops.services.ai.orchestrator import GenerationOrchestrator
from contentops.services.ai.requests import (
    GenerationRequest,
    LegacyGenerationRequest,
    RequestSchema
)
from tests.factories import FakeAdapter, GenerationRequestFactory


class TestProviderOrder:

    @pytest.mark.unit
    def test_declaration_order_when_no_history(self, orchestrator):
        assert orchestrator.provider_order() == ["primary", "secondary"]

    @pytest.mark.unit
    def test_preferred_provider_goes_first(self, orchestrator):
        assert orchestrator.provider_order("secondary") == ["secondary", "primary"]

    @pytest.mark.unit
    def test_unknown_preferred_provider_is_ignored(self, orchestrator):
        assert orchestrator.provider_order("nonexistent") == ["primary", "secondary"]

    @pytest.mark.unit
    def test_unconfigured_adapters_are_excluded(self, tracker):
        orchestrator = GenerationOrchestrator(
            [FakeAdapter("primary", configured=False), FakeAdapter("secondary")],
            tracker
        )
        assert orchestrator.available_providers == ["secondary"]
        assert orchestrator.provider_order("primary") == ["secondary"]

    @pytest.mark.unit
    def test_requires_a_configured_adapter(self, tracker):
        with pytest.raises(ValueError):
            GenerationOrchestrator([FakeAdapter("primary", configured=False)], tracker)

    @pytest.mark.unit
    def test_ranking_follows_health(self, orchestrator, tracker):
        tracker.record("primary", False, 0.5)
        tracker.record("secondary", True, 2.0)
        assert orchestrator.provider_order() == ["secondary", "primary"]


class TestGenerate:

    @pytest.mark.unit
    @pytest.mark.ai
    async def test_first_provider_success(self, orchestrator, sample_request, secondary_adapter):
        result = await orchestrator.generate(sample_request)

        assert result.success is True
        assert len(result.attempts) == 1
        assert result.fallback_used is False
        assert result.final_provider == "primary"
        assert result.parsed.title == "Intro to Widgets"
        assert result.parsed.structured is True
        assert result.quality is not None
        assert 0 <= result.quality.overall_score <= 100
        assert secondary_adapter.requests == []

    @pytest.mark.unit
    @pytest.mark.ai
    async def test_auth_failure_falls_through_to_secondary(self, tracker, sample_request):
        primary = FakeAdapter("primary", outcomes=[ProviderAuthError("bad key", "primary")])
        secondary = FakeAdapter("secondary")
        orchestrator = GenerationOrchestrator([primary, secondary], tracker)

        result = await orchestrator.generate(sample_request)

        assert result.success is True
        assert len(result.attempts) == 2
        assert result.attempts[0].provider == "primary"
        assert result.attempts[0].success is False
        assert result.attempts[0].error_kind == ErrorKind.AUTH
        assert result.attempts[1].provider == "secondary"
        assert result.attempts[1].success is True
        assert result.primary_provider == "primary"
        assert result.final_provider == "secondary"
        assert result.fallback_used is False

    @pytest.mark.unit
    async def test_totals_sum_over_attempts(self, tracker, sample_request):
        primary = FakeAdapter("primary", outcomes=[ProviderTimeoutError("slow", "primary")])
        orchestrator = GenerationOrchestrator([primary, FakeAdapter("secondary")], tracker)

        result = await orchestrator.generate(sample_request)

        assert result.total_tokens == sum(a.tokens_used for a in result.attempts)
        assert result.total_cost == pytest.approx(0.01)

    @pytest.mark.unit
    async def test_outcomes_feed_the_tracker(self, tracker, sample_request):
        primary = FakeAdapter("primary", outcomes=[ProviderAuthError("bad key", "primary")])
        orchestrator = GenerationOrchestrator([primary, FakeAdapter("secondary")], tracker)

        await orchestrator.generate(sample_request)
        snapshot = tracker.snapshot()

        assert snapshot["primary"].failures == 1
        assert snapshot["secondary"].successes == 1
        assert orchestrator.provider_order() == ["secondary", "primary"]

    @pytest.mark.unit
    async def test_invalid_request_makes_no_provider_calls(self, orchestrator, primary_adapter):
        with pytest.raises(ValidationError):
            await orchestrator.generate(GenerationRequest(title="   "))

        assert primary_adapter.requests == []

    @pytest.mark.unit
    async def test_unstructured_output_is_still_a_success(self, tracker, sample_request):
        primary = FakeAdapter("primary", default="Widgets 101\n\nWidgets are handy little tools.")
        orchestrator = GenerationOrchestrator([primary], tracker)

        result = await orchestrator.generate(sample_request)

        assert result.success is True
        assert result.parsed.structured is False
        assert result.parsed.title == "Widgets 101"


class TestSchemaFallback:

    @pytest.mark.unit
    @pytest.mark.ai
    async def test_content_policy_failures_recover_on_legacy_schema(self, tracker, sample_request):
        primary = FakeAdapter("primary", outcomes=[ContentPolicyViolationError("blocked", "primary")])
        secondary = FakeAdapter("secondary", outcomes=[ContentPolicyViolationError("blocked", "secondary")])
        orchestrator = GenerationOrchestrator([primary, secondary], tracker)

        result = await orchestrator.generate(sample_request)

        assert result.success is True
        assert result.fallback_used is True
        assert isinstance(result.original_v2_error, ContentPolicyViolationError)
        assert [a.schema for a in result.attempts] == [
            RequestSchema.V2, RequestSchema.V2, RequestSchema.LEGACY
        ]
        assert [a.provider for a in result.attempts] == ["primary", "secondary", "primary"]
        assert isinstance(primary.requests[-1], LegacyGenerationRequest)
        assert primary.requests[-1].source == sample_request

    @pytest.mark.unit
    async def test_both_passes_failing_raises_schema_fallback_failed(self, tracker, sample_request):
        primary = FakeAdapter("primary", default=ProviderAuthError("bad key", "primary"))
        secondary = FakeAdapter("secondary", default=InvalidResponseError("empty", "secondary"))
        orchestrator = GenerationOrchestrator([primary, secondary], tracker)

        with pytest.raises(SchemaFallbackFailedError) as exc_info:
            await orchestrator.generate(sample_request)

        error = exc_info.value
        assert len(error.attempts) == 4
        assert [a.schema for a in error.attempts] == [RequestSchema.V2] * 2 + [RequestSchema.LEGACY] * 2
        assert isinstance(error.v2_error, InvalidResponseError)
        assert isinstance(error.legacy_error, InvalidResponseError)
        assert error.result.success is False
        assert "Legacy error" in str(error)

    @pytest.mark.unit
    async def test_disabled_fallback_raises_all_providers_exhausted(self, tracker, sample_request):
        primary = FakeAdapter("primary", default=ProviderAuthError("bad key", "primary"))
        secondary = FakeAdapter("secondary", default=ProviderTimeoutError("slow", "secondary"))
        orchestrator = GenerationOrchestrator([primary, secondary], tracker, schema_fallback_enabled=False)

        with pytest.raises(AllProvidersExhaustedError) as exc_info:
            await orchestrator.generate(sample_request)

        error = exc_info.value
        assert [a.provider for a in error.attempts] == ["primary", "secondary"]
        assert [a.error_kind for a in error.attempts] == [ErrorKind.AUTH, ErrorKind.TIMEOUT]
        assert isinstance(error.last_error, ProviderTimeoutError)
        assert str(error).startswith("All providers failed")

    @pytest.mark.unit
    async def test_legacy_pass_tries_every_provider(self):
        tracker = ProviderHealthTracker(declaration_order=["a", "b", "c"])
        adapters = [FakeAdapter(name, default=ProviderAuthError("no", name)) for name in ("a", "b")]
        adapters.append(FakeAdapter("c", outcomes=[ProviderAuthError("no", "c")]))
        orchestrator = GenerationOrchestrator(adapters, tracker)

        result = await orchestrator.generate(GenerationRequestFactory())

        assert result.fallback_used is True
        assert len(result.attempts) == 6
        assert result.final_provider == "c"
