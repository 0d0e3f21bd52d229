"""Tests for the bounded retry state machine."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from generable.generation.retry import RetryController
from generable.generation.types import (
    GenerableError,
    GenerableErrorKind,
    RetryContext,
    RetryPolicy,
)


def _controller(max_attempts: int = 3, **kwargs) -> RetryController:
    return RetryController(RetryPolicy(max_attempts=max_attempts, **kwargs))


def _assert_history_consistent(controller: RetryController) -> None:
    summary = controller.summary()
    assert len(summary.errors) == controller.attempt_count
    assert controller.attempt_count <= controller.policy.max_attempts


class TestRecordFailure:
    def test_returns_context_while_attempts_remain(self):
        controller = _controller(3)
        error = GenerableError.json_parse_failed("{", "Expecting value")
        context = controller.record_failure(error, "{")
        assert context == RetryContext(
            attempt_number=1, max_attempts=3, error=error, failed_content="{"
        )
        assert controller.can_retry
        assert controller.current_attempt == 2
        assert controller.remaining_attempts == 2

    def test_retry_bound(self):
        controller = _controller(2)
        assert controller.record_failure(GenerableError.empty_response(), "") is not None
        assert controller.record_failure(GenerableError.empty_response(), "") is None
        assert not controller.can_retry

        final = controller.final_error()
        assert final.kind == GenerableErrorKind.MAX_RETRIES_EXCEEDED
        assert final.attempts == 2
        _assert_history_consistent(controller)

    def test_failure_after_exhaustion_not_counted(self):
        controller = _controller(1)
        controller.record_failure(GenerableError.empty_response(), "")
        late = GenerableError.connection_error("refused")
        assert controller.record_failure(late, "") is None
        assert controller.attempt_count == 1
        assert controller.final_error().detail == late.description
        _assert_history_consistent(controller)

    @pytest.mark.parametrize(
        "error",
        [GenerableError.unknown("boom"), GenerableError.max_retries_exceeded(1, "x")],
    )
    def test_non_retryable_short_circuits(self, error):
        controller = _controller(5)
        assert controller.record_failure(error, "content") is None
        assert controller.attempt_count == 1
        assert controller.last_error == error
        assert controller.last_failed_content == "content"
        assert controller.final_error().detail == error.description

    def test_zero_attempt_policy(self):
        controller = RetryController(RetryPolicy.none())
        assert not controller.can_retry
        error = GenerableError.empty_response()
        assert controller.record_failure(error, "") is None
        assert controller.attempt_count == 0
        final = controller.final_error()
        assert final.attempts == 0
        assert final.detail == "Model returned empty response"
        _assert_history_consistent(controller)

    def test_final_error_without_failures(self):
        final = _controller().final_error()
        assert final.attempts == 0
        assert final.detail == "Unknown error"


class TestLifecycle:
    def test_record_success_resets(self):
        controller = _controller(2)
        controller.record_failure(GenerableError.empty_response(), "")
        controller.record_success()
        assert controller.attempt_count == 0
        assert controller.last_error is None
        assert controller.can_retry

    def test_reset_clears_rejected_error(self):
        controller = RetryController(RetryPolicy.none())
        controller.record_failure(GenerableError.empty_response(), "")
        controller.reset()
        assert controller.final_error().detail == "Unknown error"

    def test_last_retry_context(self):
        controller = _controller(3)
        assert controller.last_retry_context() is None
        controller.record_failure(GenerableError.empty_response(), "a")
        context = controller.last_retry_context()
        assert context.attempt_number == 1
        assert context.failed_content == "a"

    def test_last_retry_context_none_when_exhausted(self):
        controller = _controller(1)
        controller.record_failure(GenerableError.empty_response(), "a")
        assert controller.last_retry_context() is None

    def test_default_policy(self):
        assert RetryController().policy == RetryPolicy.default()


class TestRetryPrompt:
    def _context(self, error: GenerableError) -> RetryContext:
        return RetryContext(attempt_number=1, max_attempts=3, error=error, failed_content="")

    def test_invalid_json_wording(self):
        prompt = _controller(3).build_retry_prompt(
            "Describe Al.",
            self._context(GenerableError.json_parse_failed("{", "Expecting value")),
        )
        assert prompt == (
            "Describe Al.\n\n[Retry attempt 2/3]\n"
            "Previous response was invalid JSON. Error: Expecting value\n"
            "Please ensure your response is valid JSON that exactly matches the schema."
        )

    def test_schema_field_wording(self):
        prompt = _controller(3).build_retry_prompt(
            "P", self._context(GenerableError.schema_validation_failed("age", "Field required")),
        )
        assert prompt.endswith(
            "Previous response failed schema validation for field 'age': Field required\n"
            "Please correct the response to match the expected schema."
        )

    def test_empty_response_wording(self):
        prompt = _controller(3).build_retry_prompt(
            "P", self._context(GenerableError.empty_response()),
        )
        assert prompt == (
            "P\n\n[Retry attempt 2/3]\n"
            "Previous response was empty. Please provide a valid JSON response."
        )

    def test_header_numbers_the_upcoming_attempt(self):
        context = RetryContext(
            attempt_number=2,
            max_attempts=3,
            error=GenerableError.empty_response(),
            failed_content="",
        )
        prompt = _controller(3).build_retry_prompt("P", context)
        assert prompt.startswith("P\n\n[Retry attempt 3/3]\n")

    def test_generic_wording(self):
        prompt = _controller(3).build_retry_prompt(
            "P", self._context(GenerableError.connection_error("refused")),
        )
        assert prompt.endswith("Please try again with a valid JSON response matching the schema.")

    def test_error_context_disabled(self):
        controller = _controller(3, include_error_context=False)
        prompt = controller.build_retry_prompt("P", self._context(GenerableError.empty_response()))
        assert prompt == "P"


class TestRetryDelay:
    def test_exponential_backoff(self):
        controller = _controller(5, base_delay_s=1.0)
        for _ in range(3):
            controller.record_failure(GenerableError.empty_response(), "")
        with patch("generable.generation.retry.random.uniform", return_value=1.0):
            assert controller.retry_delay() == pytest.approx(2.25)

    def test_jitter_bounds(self):
        controller = _controller(5, base_delay_s=1.0)
        controller.record_failure(GenerableError.empty_response(), "")
        for _ in range(50):
            assert 0.8 <= controller.retry_delay() <= 1.2

    def test_zero_base_delay(self):
        assert _controller(3, base_delay_s=0.0).retry_delay() == 0.0


class TestSummary:
    def test_describe_exhausted(self):
        controller = _controller(2)
        controller.record_failure(GenerableError.empty_response(), "")
        controller.record_failure(GenerableError.connection_error("refused"), "")
        assert controller.summary().describe() == (
            "Retry Summary: 2/2 attempts (exhausted)\n"
            "Errors:\n"
            "  1. Model returned empty response\n"
            "  2. Connection error: refused"
        )

    def test_describe_fresh(self):
        assert _controller(3).summary().describe() == "Retry Summary: 0/3 attempts"
