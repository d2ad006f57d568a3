import logging
import queue
from pathlib import Path

from bulkcaller.errors import OutputDirError
from bulkcaller.schemas import Outcome, RunSummary


logger = logging.getLogger(__name__)

# Put on the result queue once every worker has exited.
CLOSED = object()


class ResultCollector:
    """Single consumer of outcomes; the only writer of the run counters."""

    def __init__(self, output_dir: str | Path | None = None, *, print_responses: bool = False) -> None:
        self.output_dir = Path(output_dir) if output_dir else None
        self.print_responses = print_responses
        self.success_count = 0
        self.failure_count = 0
        self._seen: set[int] = set()

    def init(self) -> None:
        if self.output_dir is None:
            return
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputDirError(f"cannot create output directory {self.output_dir}: {exc}") from exc

    def collect(self, outcome: Outcome) -> None:
        if outcome.row_index in self._seen:
            raise RuntimeError(f"duplicate outcome for row {outcome.row_index}")
        self._seen.add(outcome.row_index)

        if not outcome.ok:
            self.failure_count += 1
            logger.warning(
                "row %d failed: %s",
                outcome.row_index,
                outcome.error,
                extra={"row_index": outcome.row_index, "error_kind": str(outcome.error_kind)},
            )
            return

        self.success_count += 1
        if self.print_responses:
            logger.info("row %d: HTTP %s", outcome.row_index, outcome.status_code)

        if self.output_dir is not None:
            try:
                self.store(outcome.row_index, outcome.body)
            except OSError:
                logger.exception("failed to write response", extra={"row_index": outcome.row_index})

    def store(self, row_index: int, data: bytes) -> Path | None:
        if self.output_dir is None:
            return None
        path = self.output_dir / f"response_{row_index}.json"
        path.write_bytes(data)
        return path

    def drain(self, results: "queue.Queue[object]") -> None:
        while True:
            item = results.get()
            if item is CLOSED:
                return
            self.collect(item)

    def counts(self) -> tuple[int, int]:
        return self.success_count, self.failure_count

    def summary(self, *, submitted: int, elapsed_s: float) -> RunSummary:
        return RunSummary(
            submitted=submitted,
            success=self.success_count,
            failure=self.failure_count,
            elapsed_s=elapsed_s,
            row_indices=tuple(sorted(self._seen)),
        )
