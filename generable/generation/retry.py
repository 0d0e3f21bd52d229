"""
Generable — Retry Controller

Tracks one generation's attempts against a RetryPolicy, decides whether a
failure earns another try, and builds the corrective prompt for it.

Invariant: the number of recorded failures never exceeds
`policy.max_attempts`. A failure reported after the budget is spent is held
separately and only surfaces through final_error().
"""

from __future__ import annotations

import random

import structlog

from generable.generation.types import (
    GenerableError,
    GenerableErrorKind,
    RetryContext,
    RetryPolicy,
    RetrySummary,
)

logger = structlog.get_logger()

_BACKOFF_FACTOR = 1.5
_JITTER_LOW = 0.8
_JITTER_HIGH = 1.2


class RetryController:
    def __init__(self, policy: RetryPolicy | None = None) -> None:
        self._policy = policy or RetryPolicy.default()
        self._attempt_count = 0
        self._errors: list[GenerableError] = []
        self._failed_contents: list[str] = []
        # Failure reported once the budget was already spent.
        self._rejected_error: GenerableError | None = None

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    # ─── State ────────────────────────────────────────────────────

    @property
    def can_retry(self) -> bool:
        return self._attempt_count < self._policy.max_attempts

    @property
    def remaining_attempts(self) -> int:
        return max(0, self._policy.max_attempts - self._attempt_count)

    @property
    def current_attempt(self) -> int:
        """1-based number of the attempt about to run."""
        return self._attempt_count + 1

    @property
    def attempt_count(self) -> int:
        return self._attempt_count

    @property
    def last_error(self) -> GenerableError | None:
        return self._errors[-1] if self._errors else None

    @property
    def last_failed_content(self) -> str | None:
        return self._failed_contents[-1] if self._failed_contents else None

    # ─── Recording ────────────────────────────────────────────────

    def record_success(self) -> None:
        logger.debug("generation_attempt_succeeded", attempt=self.current_attempt)
        self.reset()

    def record_failure(self, error: GenerableError, content: str) -> RetryContext | None:
        """
        Record a failed attempt.

        Returns the context for the next attempt, or None when the error is
        not retryable or the budget is spent.
        """
        if not self.can_retry:
            self._rejected_error = error
            logger.info(
                "generation_retry_budget_exhausted",
                attempts=self._attempt_count,
                error_kind=error.kind.value,
            )
            return None

        self._attempt_count += 1
        self._errors.append(error)
        self._failed_contents.append(content)

        if not error.is_retryable:
            logger.info(
                "generation_error_not_retryable",
                attempt=self._attempt_count,
                error_kind=error.kind.value,
            )
            return None

        if not self.can_retry:
            logger.info(
                "generation_retry_budget_exhausted",
                attempts=self._attempt_count,
                error_kind=error.kind.value,
            )
            return None

        logger.warning(
            "generation_attempt_failed",
            attempt=self._attempt_count,
            max_attempts=self._policy.max_attempts,
            error_kind=error.kind.value,
            error=error.description,
        )
        return RetryContext(
            attempt_number=self._attempt_count,
            max_attempts=self._policy.max_attempts,
            error=error,
            failed_content=content,
        )

    def final_error(self) -> GenerableError:
        last = self._rejected_error or self.last_error
        return GenerableError.max_retries_exceeded(
            attempts=self._attempt_count,
            last_error=last.description if last is not None else "Unknown error",
        )

    def last_retry_context(self) -> RetryContext | None:
        """Context for the most recent retryable failure, if a retry is due."""
        if not self._errors or not self.can_retry:
            return None
        return RetryContext(
            attempt_number=self._attempt_count,
            max_attempts=self._policy.max_attempts,
            error=self._errors[-1],
            failed_content=self._failed_contents[-1],
        )

    # ─── Next attempt ─────────────────────────────────────────────

    def build_retry_prompt(self, original_prompt: str, context: RetryContext) -> str:
        """
        Append the failure notes to `original_prompt`.

        The `[Retry attempt N/M]` header numbers the attempt the prompt is
        sent with, so the first retry after one failure reads `2/M`.
        """
        if not self._policy.include_error_context:
            return original_prompt

        prompt = original_prompt
        prompt += f"\n\n[Retry attempt {context.attempt_number + 1}/{context.max_attempts}]\n"

        error = context.error
        match error.kind:
            case GenerableErrorKind.JSON_PARSE_FAILED:
                prompt += (
                    f"Previous response was invalid JSON. Error: {error.detail}\n"
                    "Please ensure your response is valid JSON that exactly matches the schema."
                )
            case GenerableErrorKind.SCHEMA_VALIDATION_FAILED:
                prompt += (
                    f"Previous response failed schema validation for field "
                    f"'{error.field}': {error.detail}\n"
                    "Please correct the response to match the expected schema."
                )
            case GenerableErrorKind.EMPTY_RESPONSE:
                prompt += "Previous response was empty. Please provide a valid JSON response."
            case _:
                prompt += "Please try again with a valid JSON response matching the schema."

        return prompt

    def retry_delay(self) -> float:
        """base * 1.5^(failures-1), jittered ±20%."""
        exponent = max(0, self._attempt_count - 1)
        base = self._policy.base_delay_s * (_BACKOFF_FACTOR ** exponent)
        return base * random.uniform(_JITTER_LOW, _JITTER_HIGH)

    def reset(self) -> None:
        self._attempt_count = 0
        self._errors.clear()
        self._failed_contents.clear()
        self._rejected_error = None

    def summary(self) -> RetrySummary:
        return RetrySummary(
            total_attempts=self._attempt_count,
            max_attempts=self._policy.max_attempts,
            errors=[e.description for e in self._errors],
            is_exhausted=not self.can_retry,
        )
