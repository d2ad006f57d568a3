import logging
import queue
import threading
import time
from collections.abc import Mapping, Sequence

from bulkcaller.collector import CLOSED, ResultCollector
from bulkcaller.config import Settings
from bulkcaller.errors import InvalidPayloadError, SetupError
from bulkcaller.httpclient import RequestExecutor
from bulkcaller.reader import read_rows
from bulkcaller.schemas import ErrorKind, Outcome, RunSummary, Task
from bulkcaller.template import extract_placeholders, render, validate_json


logger = logging.getLogger(__name__)

PROGRESS_EVERY = 100

# One per worker, put on the task queue after the last row.
_STOP = object()


class Dispatcher:
    """Fixed pool of worker threads between a bounded task queue and a bounded result queue."""

    def __init__(
        self,
        executor: RequestExecutor,
        *,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        workers: int = 10,
        delay_s: float = 0.0,
    ) -> None:
        if workers < 1:
            raise SetupError(f"worker count must be at least 1, got {workers}")
        self.executor = executor
        self.method = method
        self.url = url
        self.headers = dict(headers or {})
        self.workers = workers
        self.delay_s = delay_s

    def run(
        self,
        rows: Sequence[Sequence[str]],
        header: Sequence[str],
        template: str,
        collector: ResultCollector,
    ) -> RunSummary:
        capacity = 2 * self.workers
        tasks: queue.Queue[object] = queue.Queue(maxsize=capacity)
        results: queue.Queue[object] = queue.Queue(maxsize=capacity)
        header_names = tuple(header)
        aggregator_errors: list[BaseException] = []

        started = time.monotonic()
        aggregator = threading.Thread(
            target=self._aggregate,
            args=(collector, results, aggregator_errors),
            name="bulkcaller-aggregator",
            daemon=True,
        )
        pool = [
            threading.Thread(
                target=self._work,
                args=(template, tasks, results),
                name=f"bulkcaller-worker-{worker_id}",
                daemon=True,
            )
            for worker_id in range(self.workers)
        ]
        self._start(aggregator, pool, tasks, results)

        total = len(rows)
        for row_index, row in enumerate(rows):
            tasks.put(Task(row_index=row_index, header=header_names, row=tuple(row)))
            queued = row_index + 1
            if queued % PROGRESS_EVERY == 0 or queued == total:
                logger.info("queued %d/%d rows", queued, total)

        for _ in pool:
            tasks.put(_STOP)
        for thread in pool:
            thread.join()

        results.put(CLOSED)
        aggregator.join()
        elapsed = time.monotonic() - started

        if aggregator_errors:
            raise aggregator_errors[0]
        return collector.summary(submitted=total, elapsed_s=elapsed)

    def _start(
        self,
        aggregator: threading.Thread,
        pool: list[threading.Thread],
        tasks: "queue.Queue[object]",
        results: "queue.Queue[object]",
    ) -> None:
        started: list[threading.Thread] = []
        try:
            aggregator.start()
            started.append(aggregator)
            for thread in pool:
                thread.start()
                started.append(thread)
        except RuntimeError as exc:
            # Release whatever did start; nothing has been submitted yet.
            for _ in started[1:]:
                tasks.put(_STOP)
            for thread in started[1:]:
                thread.join()
            if started:
                results.put(CLOSED)
                aggregator.join()
            logger.error("could not start worker pool", extra={"workers": self.workers, "started": len(started)})
            raise SetupError(f"cannot start worker pool: {exc}") from exc

    def _work(self, template: str, tasks: "queue.Queue[object]", results: "queue.Queue[object]") -> None:
        while True:
            task = tasks.get()
            if task is _STOP:
                return
            results.put(self.process(task, template))

    def process(self, task: Task, template: str) -> Outcome:
        try:
            body = render(template, task.header, task.row)
            try:
                validate_json(body)
            except InvalidPayloadError as exc:
                return Outcome.failure(task.row_index, ErrorKind.INVALID_PAYLOAD, str(exc))

            try:
                outcome = self.executor.execute(self.method, self.url, self.headers, body)
            finally:
                if self.delay_s > 0:
                    time.sleep(self.delay_s)
            return outcome.with_row_index(task.row_index)
        except Exception as exc:
            logger.exception("unexpected error processing row", extra={"row_index": task.row_index})
            return Outcome.failure(task.row_index, ErrorKind.INTERNAL, f"{type(exc).__name__}: {exc}")

    def _aggregate(
        self,
        collector: ResultCollector,
        results: "queue.Queue[object]",
        errors: list[BaseException],
    ) -> None:
        try:
            collector.drain(results)
        except Exception as exc:
            errors.append(exc)
            # Keep consuming so workers never block on a full result queue.
            while results.get() is not CLOSED:
                pass


class BulkRunner:
    def __init__(self, settings: Settings, executor: RequestExecutor | None = None) -> None:
        self.settings = settings
        self.executor = executor or RequestExecutor(
            timeout=settings.timeout_seconds,
            max_retries=settings.max_retries,
            backoff_seconds=settings.retry_backoff_seconds,
        )
        self.collector = ResultCollector(settings.output_dir, print_responses=settings.print_responses)

    def run(self) -> RunSummary:
        settings = self.settings
        settings.validate()
        self.collector.init()
        header, rows = read_rows(settings.file_path)

        url = settings.request_url()
        logger.info("starting bulk requests to %s", url)
        logger.info("reading from %s", settings.file_path)
        logger.info(
            "total rows: %d | workers: %d | delay: %.3fs | retries: %d",
            len(rows),
            settings.concurrency,
            settings.delay_seconds,
            settings.max_retries,
        )
        placeholders = extract_placeholders(settings.body_template)
        if placeholders:
            logger.info("found placeholders: %s", ", ".join(placeholders))

        dispatcher = Dispatcher(
            self.executor,
            method=settings.method,
            url=url,
            headers=settings.headers,
            workers=settings.concurrency,
            delay_s=settings.delay_seconds,
        )
        summary = dispatcher.run(rows, header, settings.body_template, self.collector)

        logger.info("results: %d success, %d failed", summary.success, summary.failure)
        logger.info(
            "completed %d requests in %.2fs (%.2f req/s)",
            summary.completed,
            summary.elapsed_s,
            summary.throughput,
        )
        return summary
