"""Bounded regeneration loop.

Ask the producer, validate the answer, and when it does not fit the contract
ask again with the violations appended to the original prompt. The loop stops
at the first valid document or after ``max_attempts`` producer calls, in which
case the last invalid outcome is returned as-is.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple, Union

from .errors import ProducerError
from .metrics import producer_calls_total, regeneration_attempts, resolutions_total, validation_failures_total
from .producer import LLMRequest, LLMResponse, Producer
from .schemas import Contract, Node, ValidationOutcome
from .validator import validate_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3

_FORMAT_NAMES = {"json": "JSON", "text": "plain text", "markdown": "Markdown"}


def build_correction_prompt(original_prompt: str, outcome: ValidationOutcome, fmt: str = "json") -> str:
    """Original prompt followed by a notice listing every violation verbatim."""
    lines = [
        original_prompt,
        "",
        "CORRECTION REQUIRED: your previous response did not match the required structure.",
        "Violations:",
    ]
    for v in outcome.violations:
        lines.append(f"- path: {v.path} | problem: {v.message} | expected: {v.expected}")
    lines.append("")
    lines.append(
        f"Re-emit the complete corrected document in {_FORMAT_NAMES.get(fmt, fmt)} format only, "
        "with no commentary before or after it."
    )
    return "\n".join(lines)


class RegenerationLoop:
    def __init__(self, producer: Producer, max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.producer = producer
        self.max_attempts = max_attempts

    async def resolve(
        self,
        request: LLMRequest,
        contract: Union[Contract, Node],
        max_attempts: Optional[int] = None,
    ) -> Tuple[LLMResponse, ValidationOutcome]:
        """Return the last producer response and its validation outcome.

        Raises ProducerError when the producer itself fails; the attempt number
        is kept on the exception.
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        name = getattr(contract, "name", "<inline>")

        current = request
        response: Optional[LLMResponse] = None
        outcome: Optional[ValidationOutcome] = None
        for attempt in range(1, attempts + 1):
            try:
                response = await self.producer.call(current)
            except Exception as exc:
                producer_calls_total.labels(result="error").inc()
                logger.error("producer %s failed on attempt %d/%d: %s", self.producer.id, attempt, attempts, exc)
                raise ProducerError(f"producer call failed on attempt {attempt}: {exc}", attempt=attempt) from exc
            producer_calls_total.labels(result="ok").inc()

            outcome = validate_text(response.content, contract)
            if outcome.valid:
                logger.info("contract %s satisfied on attempt %d/%d", name, attempt, attempts)
                regeneration_attempts.observe(attempt)
                resolutions_total.labels(result="valid").inc()
                return response, outcome

            validation_failures_total.inc()
            logger.warning(
                "attempt %d/%d for contract %s produced %d violation(s): %s",
                attempt, attempts, name, len(outcome.violations), "; ".join(outcome.messages),
            )
            if attempt < attempts:
                current = request.model_copy(
                    update={"prompt": build_correction_prompt(request.prompt, outcome, request.format)}
                )

        regeneration_attempts.observe(attempts)
        resolutions_total.labels(result="exhausted").inc()
        logger.error("contract %s still invalid after %d attempt(s)", name, attempts)
        return response, outcome
