"""
Reconciliation engine.

Brings one scanned field in line with the translation store: the field gets a
marker, its fingerprint gets a base record, and the fingerprint gets mapped to
the scope the field lives in. Reconciling a field twice changes nothing the
second time.
"""

import sqlite3
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional

from autotranslate.config import Settings
from autotranslate.logger import get_logger
from autotranslate.tagging.fingerprint import fingerprint
from autotranslate.tagging.host import HostContentStore
from autotranslate.tagging.markers import MalformedContentError, MarkerError, apply_marker, parse_marker
from autotranslate.tagging.mlang import parse_mlang
from autotranslate.tagging.scanner import ContentScanner, FieldRef
from autotranslate.translation.store import TranslationRecord, TranslationStore

logger = get_logger(__name__)


class MappingRefusedError(Exception):
    """The base record of a fingerprint vanished before its scope mapping was written."""


@dataclass
class ReconcileResult:
    identifier: str
    changed: bool
    content: str


@dataclass
class ReconcileSummary:
    scanned: int = 0
    tagged: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    identifiers: List[str] = field(default_factory=list)

    def to_dict(self):
        return {
            "scanned": self.scanned,
            "tagged": self.tagged,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "identifiers": len(self.identifiers),
        }


class ReconciliationEngine:
    def __init__(self, store: TranslationStore, settings: Settings):
        self.store = store
        self.settings = settings

    def _seed_mlang(self, identifier: str, translations: dict, field_ref: FieldRef) -> None:
        for lang, text in translations.items():
            if not text:
                continue
            self.store.insert_if_absent(TranslationRecord(
                hash=identifier, lang=lang, text=text,
                scope_kind=field_ref.scope_kind, scope_id=field_ref.scope_id,
                is_human_edited=True,
            ))

    def _sync_base_record(self, identifier: str, content: str, field_ref: FieldRef) -> None:
        base = self.store.base_language
        record = self.store.find(identifier, base)
        if record is None:
            if self.store.insert_if_absent(TranslationRecord(
                hash=identifier, lang=base, text=content,
                scope_kind=field_ref.scope_kind, scope_id=field_ref.scope_id,
            )):
                return
            # Another writer created it first
            record = self.store.find(identifier, base)

        if record is None or record.text == content:
            return
        if record.is_human_edited:
            logger.debug(f"Base text of {identifier} is human-edited, not re-syncing from {field_ref.field_path}")
            return
        if self.store.update_source_text(identifier, content):
            self.store.mark_for_review(identifier)
            logger.info(f"Re-synced base text of {identifier} from {field_ref.field_path}")

    def _store_records(self, identifier: str, content: str, translations: dict,
                       field_ref: FieldRef) -> None:
        # An orphan prune can land between the base insert and the mapping insert,
        # which then finds no base record: write the records again, once
        for _ in range(2):
            self._sync_base_record(identifier, content, field_ref)
            if translations:
                self._seed_mlang(identifier, translations, field_ref)
            if (self.store.add_scope_mapping(identifier, field_ref.scope_id)
                    or self.store.has_scope_mapping(identifier, field_ref.scope_id)):
                return
            logger.warning(f"Base record of {identifier} vanished before mapping {field_ref.field_path}")
        raise MappingRefusedError(f"{identifier} could not be mapped to scope {field_ref.scope_id}")

    def reconcile(self, field_ref: FieldRef) -> ReconcileResult:
        """
        Reconcile one field.

        Returns:
            ReconcileResult; `content` is the text the field should hold and
            `changed` says whether it differs from what was scanned.

        Raises:
            MalformedMarkerError: the field holds a broken or ambiguous marker.
            MalformedContentError: no safe place to put a marker.
            MappingRefusedError: the fingerprint could not be mapped to its scope.
        """
        identifier, content = parse_marker(field_ref.raw_content, html=field_ref.is_html)
        translations = {}

        if identifier is None:
            mlang = parse_mlang(content, self.settings.site_language, self.store.base_language)
            if mlang.found:
                content = mlang.source_text
                translations = mlang.translations
            if not content.strip():
                raise MalformedContentError(f"{field_ref.field_path} has no text to tag")
            identifier = fingerprint(content)
            new_content = apply_marker(content, identifier, html=field_ref.is_html)
        else:
            new_content = field_ref.raw_content

        self._store_records(identifier, content, translations, field_ref)

        return ReconcileResult(
            identifier=identifier,
            changed=new_content != field_ref.raw_content,
            content=new_content,
        )

    def reconcile_all(self, fields: Iterable[FieldRef],
                      write_back: Optional[Callable[[FieldRef, str], bool]] = None) -> ReconcileSummary:
        """
        Reconcile every field, isolating failures per field.

        Args:
            fields: FieldRefs, typically from ContentScanner.scan().
            write_back: Persists rewritten content; returns False when the row is gone.
        """
        summary = ReconcileSummary()
        seen = set()
        for field_ref in fields:
            summary.scanned += 1
            try:
                result = self.reconcile(field_ref)
                if result.changed and write_back is not None and not write_back(field_ref, result.content):
                    logger.debug(f"{field_ref.field_path} changed or vanished before write-back")
                    summary.skipped += 1
                elif result.changed:
                    summary.tagged += 1
                else:
                    summary.unchanged += 1
            except MarkerError as e:
                logger.warning(f"Skipping {field_ref.field_path}: {e}")
                summary.skipped += 1
                continue
            except (sqlite3.Error, MappingRefusedError) as e:
                logger.error(f"Storage error on {field_ref.field_path}: {e}")
                summary.failed += 1
                continue

            if result.identifier not in seen:
                seen.add(result.identifier)
                summary.identifiers.append(result.identifier)

        return summary


def run_tagging_pass(settings: Settings, store: TranslationStore, host: HostContentStore,
                     scope_id: Optional[int] = None) -> ReconcileSummary:
    """Scan the host, reconcile every field and write rewritten content back."""
    scanner = ContentScanner(settings.tagging, host)
    engine = ReconciliationEngine(store, settings)

    def write_back(field_ref: FieldRef, content: str) -> bool:
        return host.write_field(field_ref.table, field_ref.row_id, field_ref.field, content,
                                expected=field_ref.raw_content)

    logger.info(f"Starting tagging pass{'' if scope_id is None else f' for scope {scope_id}'}")
    summary = engine.reconcile_all(scanner.scan(scope_id=scope_id), write_back=write_back)
    logger.info(
        f"Tagging pass done: {summary.scanned} scanned, {summary.tagged} tagged, "
        f"{summary.unchanged} unchanged, {summary.skipped} skipped, {summary.failed} failed"
    )
    return summary
