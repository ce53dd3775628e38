"""
Background execution for fetch tasks and periodic jobs.

Fetch tasks are run one at a time by a single daemon thread draining a queue.
Their progress lives in the task_progress table, so clients poll the database
rather than this process. The tagging pass and the mapping purge can also run
on fixed intervals.
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from flask import current_app, request

from autotranslate.ai.providers import OpenAICompatibleProvider
from autotranslate.ai.service import build_provider, validate_provider_config
from autotranslate.config import Settings
from autotranslate.core import database as db
from autotranslate.events import ScopeEventHandler
from autotranslate.logger import get_logger
from autotranslate.tagging.host import HostContentStore
from autotranslate.tagging.reconciler import ReconcileSummary, run_tagging_pass
from autotranslate.tagging.scanner import ContentScanner
from autotranslate.translation.fetcher import FetchTracker
from autotranslate.translation.filter import TranslationFilter
from autotranslate.translation.progress import QUEUED, RUNNING
from autotranslate.translation.store import TranslationStore

logger = get_logger(__name__)

EXTENSION_KEY = "autotranslate"


class FetchWorker:
    """Single consumer of queued fetch task ids."""

    def __init__(self, tracker: FetchTracker):
        self.tracker = tracker
        self._queue: "queue.Queue[Optional[str]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def submit(self, task_id: str) -> None:
        self._queue.put(task_id)

    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            self._thread = threading.Thread(target=self._loop, name="fetch-worker", daemon=True)
            self._thread.start()
        logger.info("Fetch worker started")

    def stop(self, timeout: float = 5.0) -> None:
        if not self.running:
            return
        self._queue.put(None)
        self._thread.join(timeout)

    def _run_one(self, task_id: str) -> None:
        try:
            self.tracker.run(task_id)
        except Exception as exc:
            logger.exception("Fetch task %s could not run: %s", task_id, exc)
            self.tracker.fail(task_id, f"{type(exc).__name__}: {exc}")

    def _loop(self) -> None:
        while True:
            task_id = self._queue.get()
            try:
                if task_id is None:
                    return
                self._run_one(task_id)
            finally:
                self._queue.task_done()

    def run_pending(self) -> int:
        """Run every queued task in the calling thread. Returns how many ran."""
        count = 0
        while True:
            try:
                task_id = self._queue.get_nowait()
            except queue.Empty:
                return count
            try:
                if task_id is not None:
                    self._run_one(task_id)
                    count += 1
            finally:
                self._queue.task_done()

    def recover(self) -> None:
        """Fail tasks left running by a previous process and requeue queued ones."""
        for row in db.get_tasks_by_status(RUNNING):
            self.tracker.fail(row["task_id"], "interrupted by restart")
        for row in db.get_tasks_by_status(QUEUED):
            self.submit(row["task_id"])


class PeriodicRunner:
    """Calls `func` every `interval` seconds on a daemon thread until stopped."""

    def __init__(self, name: str, interval: float, func: Callable[[], Any]):
        self.name = name
        self.interval = interval
        self.func = func
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> bool:
        if self.interval <= 0:
            logger.debug(f"Periodic job {self.name} disabled")
            return False
        self._thread = threading.Thread(target=self._loop, name=f"periodic-{self.name}", daemon=True)
        self._thread.start()
        logger.info(f"Periodic job {self.name} every {self.interval}s")
        return True

    def _loop(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.func()
            except Exception:
                logger.exception(f"Periodic job {self.name} failed")

    def stop(self) -> None:
        self._stop.set()


@dataclass
class Services:
    """Components shared by the routes and background threads of one app."""
    settings: Settings
    store: TranslationStore
    host: HostContentStore
    scanner: ContentScanner
    tracker: FetchTracker
    events: ScopeEventHandler
    filter: TranslationFilter
    worker: FetchWorker
    runners: List[PeriodicRunner] = field(default_factory=list)
    tagging_lock: threading.Lock = field(default_factory=threading.Lock)

    def check_provider(self) -> None:
        """Validate the configured provider; injected providers are trusted."""
        if isinstance(self.tracker.provider, OpenAICompatibleProvider):
            validate_provider_config(self.settings.provider)

    def run_tagging(self, scope_id: Optional[int] = None) -> ReconcileSummary:
        # One pass at a time; passes are not meant to overlap
        with self.tagging_lock:
            return run_tagging_pass(self.settings, self.store, self.host, scope_id=scope_id)

    def purge_mappings(self) -> Dict[str, int]:
        return self.events.purge_all_stale_mappings()

    def shutdown(self) -> None:
        for runner in self.runners:
            runner.stop()
        self.worker.stop()


def build_services(settings: Settings, provider=None) -> Services:
    store = TranslationStore(settings.base_language, settings.site_language)
    host = HostContentStore(settings.host_database or db.DB_FILE)
    scanner = ContentScanner(settings.tagging, host)
    tracker = FetchTracker(store, provider or build_provider(settings.provider), settings)
    return Services(
        settings=settings,
        store=store,
        host=host,
        scanner=scanner,
        tracker=tracker,
        events=ScopeEventHandler(store, scanner),
        filter=TranslationFilter(store),
        worker=FetchWorker(tracker),
    )


def start_background(services: Services) -> None:
    """Start the fetch worker and the periodic jobs."""
    services.worker.recover()
    services.worker.start()
    scheduler = services.settings.scheduler
    runners = [
        PeriodicRunner("tagging", scheduler.tagging_interval_seconds, services.run_tagging),
        PeriodicRunner("purge-mappings", scheduler.purge_interval_seconds, services.purge_mappings),
    ]
    services.runners = [runner for runner in runners if runner.start()]


def json_object() -> Optional[Dict[str, Any]]:
    """JSON body of the current request; {} without one, None when it is not an object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None


def get_services() -> Services:
    """Services of the current Flask application."""
    return current_app.extensions[EXTENSION_KEY]
