"""
Failure taxonomy for the article-to-quiz pipeline.

Each error knows the HTTP status it maps to, so the orchestrator can turn any
of them into a terminal failure result without a lookup table.
"""

from typing import Optional


class QuizPipelineError(Exception):
    kind = "pipeline_error"
    status_code = 500
    default_message = "Failed to generate quiz"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class InputValidationError(QuizPipelineError):
    kind = "invalid_input"
    status_code = 400
    default_message = "Invalid URL format"


class FetchError(QuizPipelineError):
    kind = "fetch_failed"
    status_code = 500
    default_message = "Failed to fetch Wikipedia article"


class ExtractionError(QuizPipelineError):
    kind = "extraction_failed"
    status_code = 500
    default_message = "Could not find article content"


class RateLimitError(QuizPipelineError):
    kind = "rate_limited"
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class PaymentRequiredError(QuizPipelineError):
    kind = "payment_required"
    status_code = 402
    default_message = "Payment required. Please add credits to your AI workspace."


class CompletionError(QuizPipelineError):
    kind = "completion_failed"
    status_code = 500
    default_message = "AI generation failed"


class MalformedResponseError(QuizPipelineError):
    kind = "malformed_response"
    status_code = 500
    default_message = "Invalid JSON response from AI"


class QuizSchemaError(MalformedResponseError):
    """Parsed JSON that does not satisfy the quiz contract (option count, answer letter, difficulty)."""

    kind = "invalid_quiz"
    default_message = "AI response did not match the quiz schema"
