import logging
import time
from collections.abc import Callable, Mapping

import requests

from bulkcaller.retry import RetryExhaustedError, run_with_retries
from bulkcaller.schemas import ErrorKind, Outcome


logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {"Content-Type": "application/json"}


class HTTPStatusError(RuntimeError):
    def __init__(self, status_code: int, body: bytes, duration_s: float) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body
        self.duration_s = duration_s


class TransportError(RuntimeError):
    def __init__(self, message: str, duration_s: float) -> None:
        super().__init__(message)
        self.duration_s = duration_s


class RequestExecutor:
    """Performs one HTTP call per row, retrying failures with linear backoff.

    The session is shared between worker threads and only used through
    ``Session.request``.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.session = session or requests.Session()
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.sleep = sleep

    def close(self) -> None:
        self.session.close()

    def execute(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None,
        body: str,
        max_retries: int | None = None,
    ) -> Outcome:
        retries = self.max_retries if max_retries is None else max_retries
        merged = {**DEFAULT_HEADERS, **(headers or {})}
        method = method.upper()

        def attempt_once(attempt: int) -> Outcome:
            return self._attempt(method, url, merged, body, attempt)

        try:
            return run_with_retries(
                attempt_once,
                max_retries=retries,
                backoff_seconds=self.backoff_seconds,
                on_attempt_failure=lambda attempt, exc: self._log_attempt_failure(attempt, exc, retries),
                should_retry=lambda exc: isinstance(exc, (HTTPStatusError, TransportError)),
                sleep=self.sleep,
            )
        except RetryExhaustedError as exc:
            return self._failure_from(exc)

    def _attempt(self, method: str, url: str, headers: dict[str, str], body: str, attempt: int) -> Outcome:
        start = time.monotonic()
        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                data=body.encode("utf-8"),
                timeout=self.timeout,
            )
            content = response.content
        except requests.RequestException as exc:
            raise TransportError(str(exc), time.monotonic() - start) from exc
        duration = time.monotonic() - start

        if 200 <= response.status_code < 300:
            return Outcome.success(-1, response.status_code, content, duration_s=duration, attempts=attempt)
        raise HTTPStatusError(response.status_code, content, duration)

    def _log_attempt_failure(self, attempt: int, exc: Exception, max_retries: int) -> None:
        logger.debug(
            "request attempt failed",
            extra={"attempt": attempt, "max_attempts": max_retries + 1, "error": str(exc)},
        )

    def _failure_from(self, exc: RetryExhaustedError) -> Outcome:
        last = exc.__cause__
        if isinstance(last, HTTPStatusError):
            return Outcome.failure(
                -1,
                ErrorKind.HTTP_STATUS,
                str(last),
                status_code=last.status_code,
                duration_s=last.duration_s,
                attempts=exc.attempts,
            )
        if isinstance(last, TransportError):
            return Outcome.failure(
                -1,
                ErrorKind.TRANSPORT,
                str(last),
                duration_s=last.duration_s,
                attempts=exc.attempts,
            )
        raise exc
