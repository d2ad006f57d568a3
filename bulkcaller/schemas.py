from dataclasses import dataclass, replace
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_PAYLOAD = "InvalidPayload"
    TRANSPORT = "TransportError"
    HTTP_STATUS = "HTTPStatusError"
    INTERNAL = "InternalError"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Task:
    row_index: int
    header: tuple[str, ...]
    row: tuple[str, ...]


@dataclass(frozen=True)
class Outcome:
    row_index: int
    status_code: int | None = None
    body: bytes = b""
    error_kind: ErrorKind | None = None
    error: str | None = None
    duration_s: float = 0.0
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(
        cls,
        row_index: int,
        status_code: int,
        body: bytes,
        *,
        duration_s: float = 0.0,
        attempts: int = 1,
    ) -> "Outcome":
        return cls(
            row_index=row_index,
            status_code=status_code,
            body=body,
            duration_s=duration_s,
            attempts=attempts,
        )

    @classmethod
    def failure(
        cls,
        row_index: int,
        error_kind: ErrorKind,
        error: str,
        *,
        status_code: int | None = None,
        duration_s: float = 0.0,
        attempts: int = 0,
    ) -> "Outcome":
        return cls(
            row_index=row_index,
            status_code=status_code,
            error_kind=error_kind,
            error=error,
            duration_s=duration_s,
            attempts=attempts,
        )

    def with_row_index(self, row_index: int) -> "Outcome":
        return replace(self, row_index=row_index)


@dataclass(frozen=True)
class RunSummary:
    submitted: int
    success: int
    failure: int
    elapsed_s: float
    row_indices: tuple[int, ...] = ()

    @property
    def completed(self) -> int:
        return self.success + self.failure

    @property
    def throughput(self) -> float:
        if self.elapsed_s <= 0:
            return 0.0
        return self.completed / self.elapsed_s
