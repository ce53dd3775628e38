"""
Fetch tracker.

Queues and runs machine-translation tasks for untranslated fingerprints and
records their progress so a client can poll it.

A task snapshots the untranslated identifiers when it is queued. Running it
walks that snapshot in fixed-size batches, persisting progress after each
batch. Transient provider errors are retried and then skipped; the entry
simply stays untranslated for a later task. A permanent provider error fails
the whole task.
"""

import json
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

from autotranslate.ai.exceptions import (
    PermanentTranslationError,
    TransientTranslationError,
    TranslationError,
)
from autotranslate.config import Settings
from autotranslate.core import database as db
from autotranslate.logger import get_logger
from autotranslate.translation.progress import (
    COMPLETED,
    FAILED,
    RUNNING,
    InvalidTransitionError,
    TaskProgress,
    sources_for,
)
from autotranslate.translation.store import TranslationRecord, TranslationStore

logger = get_logger(__name__)

TASK_TYPE = "fetch_translations"

# Connection failures that outlast the retries fail the task instead of the entry
FATAL_TRANSIENT_CODES = ("provider_unreachable",)


@dataclass
class FetchCriteria:
    target_lang: str
    scope_id: Optional[int] = None
    limit: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FetchCriteria":
        if not isinstance(data, dict):
            raise ValueError("Task criteria must be a JSON object")
        target_lang = data.get("target_lang")
        if target_lang is not None and not isinstance(target_lang, str):
            raise ValueError("target_lang must be a string")
        target_lang = (target_lang or "").strip()
        if not target_lang:
            raise ValueError("target_lang is required")
        scope_id = data.get("scope_id")
        limit = data.get("limit")
        return cls(
            target_lang=target_lang,
            scope_id=int(scope_id) if scope_id is not None else None,
            limit=int(limit) if limit else None,
        )


class FetchTracker:
    """Runs fetch tasks against a provider and keeps their TaskProgress rows current."""

    def __init__(self, store: TranslationStore, provider, settings: Settings,
                 sleep: Callable[[float], None] = time.sleep):
        self.store = store
        self.provider = provider
        self.settings = settings
        self._sleep = sleep

    def enqueue(self, criteria: FetchCriteria) -> str:
        """
        Snapshot the untranslated identifiers matching `criteria` and queue a task.

        Returns:
            The new task id.

        Raises:
            ValueError: if the target language is the base language.
        """
        target_lang = self.store.resolve_language(criteria.target_lang)
        if target_lang == self.store.base_language:
            raise ValueError(f"{criteria.target_lang!r} is the source language")

        hashes = self.store.list_untranslated(target_lang, scope_filter=criteria.scope_id,
                                              limit=criteria.limit)
        task_id = uuid.uuid4().hex
        snapshot = dict(asdict(criteria), target_lang=target_lang, hashes=hashes)
        db.create_task_progress(task_id, TASK_TYPE, len(hashes), criteria=json.dumps(snapshot))
        logger.info(f"Queued task {task_id}: {len(hashes)} entries for '{target_lang}'")
        return task_id

    def get_progress(self, task_id: str) -> Optional[TaskProgress]:
        row = db.get_task_progress(task_id)
        return TaskProgress.from_row(row) if row else None

    def poll(self, task_id: str) -> Optional[Dict[str, Any]]:
        """Return {status, percentage} or None for an unknown task."""
        progress = self.get_progress(task_id)
        return progress.to_status() if progress else None

    def _transition(self, task_id: str, status: str, **fields) -> None:
        if not db.update_task_progress(task_id, status=status, allowed_from=sources_for(status), **fields):
            current = self.get_progress(task_id)
            raise InvalidTransitionError(task_id, current.status if current else None, status)

    def fail(self, task_id: str, reason: str) -> None:
        """Mark a queued or running task failed."""
        try:
            self._transition(task_id, FAILED, failure_reason=reason[:1000])
        except InvalidTransitionError as e:
            logger.warning(f"Could not mark task failed: {e}")
        logger.error(f"Task {task_id} failed: {reason}")

    def _wait_time(self, error: TranslationError, attempt: int) -> float:
        wait = self.settings.fetch.retry_backoff_seconds * (2 ** attempt)
        if error.code == "rate_limited":
            wait *= 2
        return min(wait, 300)

    def _translate_with_retry(self, text: str, target_lang: str) -> str:
        """
        Translate one text, retrying transient errors up to max_attempts.

        Raises:
            PermanentTranslationError: immediately.
            TranslationError: the last error once attempts are used up.
        """
        max_attempts = self.settings.fetch.max_attempts
        source_lang = self.settings.site_language
        last_error = None
        for attempt in range(max_attempts):
            try:
                return self.provider.translate(text, source_lang, target_lang)
            except PermanentTranslationError:
                raise
            except TranslationError as e:
                last_error = e
                if attempt < max_attempts - 1:
                    wait_time = self._wait_time(e, attempt)
                    logger.warning(f"  Attempt {attempt + 1} failed: {e}. Waiting {wait_time}s before retry...")
                    self._sleep(wait_time)
        raise last_error

    def _process_batch(self, batch: List[str], target_lang: str, failures: List[str]) -> None:
        sources = self.store.get_source_texts(batch)
        for identifier in batch:
            text = sources.get(identifier)
            if text is None:
                # Pruned since the task was queued
                continue
            if self.store.find(identifier, target_lang) is not None:
                continue
            try:
                translated = self._translate_with_retry(text, target_lang)
            except PermanentTranslationError:
                raise
            except TranslationError as e:
                if getattr(e, "code", None) in FATAL_TRANSIENT_CODES:
                    raise
                logger.warning(f"Skipping {identifier} after {self.settings.fetch.max_attempts} attempts: {e}")
                failures.append(f"{identifier}: {e}")
                continue
            if not self.store.upsert(TranslationRecord(hash=identifier, lang=target_lang, text=translated)):
                logger.debug(f"Kept human-edited translation {identifier}/{target_lang}")

    def run(self, task_id: str, on_batch: Callable[[TaskProgress], None] = None) -> TaskProgress:
        """
        Run a queued task to completion or failure.

        Args:
            task_id: Task created by enqueue.
            on_batch: Called with the persisted progress after every batch.

        Raises:
            KeyError: unknown task.
            InvalidTransitionError: the task is not queued.
        """
        row = db.get_task_progress(task_id)
        if row is None:
            raise KeyError(task_id)
        self._transition(task_id, RUNNING)

        try:
            criteria = json.loads(row.get("criteria") or "{}")
            hashes = criteria.get("hashes", [])
            target_lang = criteria["target_lang"]
            batch_size = self.settings.fetch.batch_size
            failures: List[str] = []

            logger.info(f"Running task {task_id}: {len(hashes)} entries, batches of {batch_size}")
            processed = 0
            for start in range(0, len(hashes), batch_size):
                batch = hashes[start:start + batch_size]
                self._process_batch(batch, target_lang, failures)
                processed += len(batch)
                db.update_task_progress(task_id, processed_entries=processed, allowed_from=[RUNNING])
                if on_batch:
                    on_batch(self.get_progress(task_id))

            reason = ""
            if failures:
                reason = f"{len(failures)} entries not translated; last error: {failures[-1]}"
            self._transition(task_id, COMPLETED, processed_entries=len(hashes), failure_reason=reason[:1000])
            logger.info(f"Task {task_id} completed ({len(hashes) - len(failures)}/{len(hashes)} translated)")
        except TranslationError as e:
            self.fail(task_id, f"{e.code or 'provider_error'}: {e}")
        except Exception as e:
            logger.exception(f"Task {task_id} crashed")
            self.fail(task_id, f"unexpected error: {e}")

        return self.get_progress(task_id)
