"""Error taxonomy for the OCR benchmark."""

from typing import Optional


class BenchmarkError(Exception):
    pass


class ConfigError(BenchmarkError):
    """Malformed pipeline configuration or an unresolvable model identifier.

    The only error that is fatal to a whole run. Raised before any document is
    processed.
    """


class ProviderError(BenchmarkError):
    """Error raised by a provider call.

    ``retryable`` is the flag the retry executor inspects; bindings set it when
    they translate an SDK error, so classification never depends on the
    exception type.
    """

    retryable = False

    def __init__(
            self,
            message: str,
            retryable: Optional[bool] = None,
            status_code: Optional[int] = None,
            provider: Optional[str] = None
    ):
        super().__init__(message)
        if retryable is not None:
            self.retryable = retryable
        self.status_code = status_code
        self.provider = provider


class TransientProviderError(ProviderError):
    retryable = True


class PermanentProviderError(ProviderError):
    retryable = False


class ResponseParseError(PermanentProviderError):
    """The model answered, but no JSON object could be recovered from the text."""

    def __init__(self, message: str, response: str = "", provider: Optional[str] = None):
        super().__init__(message, provider=provider)
        self.response = response


class RetryExhaustedError(BenchmarkError):
    def __init__(self, operation_name: str, attempts: int, last_error: BaseException):
        super().__init__(
            f"{operation_name} failed after {attempts} attempts. Last error: {last_error}"
        )
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error


class PipelineFailure(BenchmarkError):
    def __init__(self, document_id: str, pipeline_id: str, reason: str):
        super().__init__(f"{pipeline_id} failed on {document_id}: {reason}")
        self.document_id = document_id
        self.pipeline_id = pipeline_id
        self.reason = reason
