"""
Translation Store

Persistence facade for translation records and scope mappings. Every method is
a thin layer over core/database.py; the merge and guard rules live in the SQL
statements there.
"""

import sqlite3
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from autotranslate.core import database as db
from autotranslate.logger import get_logger

logger = get_logger(__name__)


@dataclass
class TranslationRecord:
    hash: str
    lang: str
    text: str
    scope_kind: Optional[str] = None
    scope_id: Optional[int] = None
    is_human_edited: bool = False
    created_at: Optional[str] = None
    modified_at: Optional[str] = None
    reviewed_at: Optional[str] = None

    @property
    def needs_review(self) -> bool:
        return bool(self.reviewed_at and self.modified_at and self.reviewed_at < self.modified_at)

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TranslationRecord":
        return cls(
            hash=row["hash"],
            lang=row["lang"],
            text=row["text"],
            scope_kind=row.get("scope_kind"),
            scope_id=row.get("scope_id"),
            is_human_edited=bool(row.get("is_human_edited")),
            created_at=row.get("created_at"),
            modified_at=row.get("modified_at"),
            reviewed_at=row.get("reviewed_at"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.hash,
            "lang": self.lang,
            "text": self.text,
            "scope_kind": self.scope_kind,
            "scope_id": self.scope_id,
            "is_human_edited": self.is_human_edited,
            "needs_review": self.needs_review,
            "created_at": self.created_at,
            "modified_at": self.modified_at,
            "reviewed_at": self.reviewed_at,
        }


class TranslationStore:
    """Translation records keyed by (hash, lang) plus hash <-> scope mappings."""

    def __init__(self, base_language: str = db.BASE_LANGUAGE, site_language: str = "en"):
        self.base_language = base_language
        self.site_language = site_language

    def resolve_language(self, lang: str) -> str:
        """The site language is stored as the base language."""
        if not lang or lang == self.site_language:
            return self.base_language
        return lang

    # ---- records ----

    def find(self, identifier: str, lang: str) -> Optional[TranslationRecord]:
        row = db.get_translation(identifier, self.resolve_language(lang))
        return TranslationRecord.from_row(row) if row else None

    def get_source_text(self, identifier: str) -> Optional[str]:
        row = db.get_translation(identifier, self.base_language)
        return row["text"] if row else None

    def list_languages(self, identifier: str) -> List[str]:
        return [row["lang"] for row in db.get_translations_for_hash(identifier)]

    def insert_if_absent(self, record: TranslationRecord) -> bool:
        return db.insert_translation_if_absent(
            record.hash, record.lang, record.text,
            scope_kind=record.scope_kind, scope_id=record.scope_id,
            is_human_edited=record.is_human_edited,
        )

    def upsert(self, record: TranslationRecord) -> bool:
        """
        Insert or merge a record on its (hash, lang) key.

        Returns False when an automatic write met a human-edited row and left it alone.
        """
        try:
            return db.upsert_translation(
                record.hash, record.lang, record.text,
                scope_kind=record.scope_kind, scope_id=record.scope_id,
                is_human_edited=record.is_human_edited,
            )
        except sqlite3.IntegrityError:
            # Lost a race on the unique key; the row now exists, merge into it
            logger.debug(f"Concurrent insert for {record.hash}/{record.lang}, retrying as update")
            if record.is_human_edited:
                return db.upsert_translation(record.hash, record.lang, record.text, is_human_edited=True)
            return db.update_machine_text(record.hash, record.lang, record.text)

    def save_human_translation(self, identifier: str, lang: str, text: str) -> TranslationRecord:
        lang = self.resolve_language(lang)
        self.upsert(TranslationRecord(hash=identifier, lang=lang, text=text, is_human_edited=True))
        if lang == self.base_language:
            self.mark_for_review(identifier)
        return self.find(identifier, lang)

    def update_source_text(self, identifier: str, text: str) -> bool:
        """Re-sync machine-maintained base text. Human-edited base text is kept."""
        return db.update_machine_text(identifier, self.base_language, text)

    def mark_for_review(self, identifier: str) -> int:
        return db.mark_translations_for_revision(identifier, self.base_language)

    def list_untranslated(self, lang: str, scope_filter: Optional[int] = None,
                          limit: Optional[int] = None) -> List[str]:
        return db.list_untranslated_hashes(
            self.resolve_language(lang), self.base_language, scope_id=scope_filter, limit=limit
        )

    def get_source_texts(self, identifiers: List[str]) -> Dict[str, str]:
        rows = db.get_base_texts(identifiers, self.base_language)
        return {hash_: row["text"] for hash_, row in rows.items()}

    # ---- scope mappings ----

    def add_scope_mapping(self, identifier: str, scope_id: int) -> bool:
        """Map a hash to a scope. False when already mapped or when the hash has no base record."""
        return db.add_scope_mapping(identifier, scope_id, self.base_language)

    def has_scope_mapping(self, identifier: str, scope_id: int) -> bool:
        return db.scope_mapping_exists(identifier, scope_id)

    def list_scope_hashes(self, scope_id: int) -> List[str]:
        return db.get_scope_hashes(scope_id)

    def list_hash_scopes(self, identifier: str) -> List[int]:
        return db.get_hash_scopes(identifier)

    def list_mapped_scopes(self) -> List[int]:
        return db.get_mapped_scope_ids()

    def delete_scope_mappings(self, scope_id: int) -> int:
        deleted = db.delete_scope_mappings(scope_id)
        logger.info(f"Deleted {deleted} mappings of scope {scope_id}")
        return deleted

    def delete_scope_mapping(self, identifier: str, scope_id: int) -> bool:
        return db.delete_scope_mapping(identifier, scope_id)

    def prune_orphans(self) -> Dict[str, int]:
        """Delete records no scope maps to, then mappings that lost their base record."""
        records = db.delete_orphan_translations()
        mappings = db.delete_dangling_mappings(self.base_language)
        if records or mappings:
            logger.info(f"Pruned {records} orphan records and {mappings} dangling mappings")
        return {"records": records, "mappings": mappings}
