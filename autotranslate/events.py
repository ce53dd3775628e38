"""
Deletion event handling.

The host reports deleted courses, modules and sections. Deleting a course drops
all of its mappings. Deleting a module or section only removes content from a
course, so the course is rescanned and mappings whose fingerprint no longer
appears in it are dropped. Either way, records no scope refers to anymore are
pruned afterwards.

A rescan reads every configured host table or nothing is deleted: a table that
cannot be read says nothing about whether its content is gone.
"""

from typing import Dict, Optional, Set

from autotranslate.logger import get_logger
from autotranslate.tagging.markers import scan_markers
from autotranslate.tagging.scanner import ContentScanner, HostUnavailableError
from autotranslate.translation.store import TranslationStore

logger = get_logger(__name__)

COURSE = "course"
MODULE = "module"
SECTION = "section"

SCOPE_KINDS = (COURSE, MODULE, SECTION)


class ScopeEventHandler:
    def __init__(self, store: TranslationStore, scanner: ContentScanner):
        self.store = store
        self.scanner = scanner

    def _stale_hashes(self, course_id: int) -> Set[str]:
        mapped = set(self.store.list_scope_hashes(course_id))
        if not mapped:
            return set()

        present = set()
        for field_ref in self.scanner.scan(scope_id=course_id, strict=True):
            # Every well-formed marker counts, even in fields the tagging pass would skip
            present.update(span.identifier for span in scan_markers(field_ref.raw_content).markers)
        return mapped - present

    def _delete_mappings(self, course_id: int, identifiers: Set[str]) -> int:
        removed = 0
        for identifier in sorted(identifiers):
            if self.store.delete_scope_mapping(identifier, course_id):
                removed += 1
        if removed:
            logger.info(f"Removed {removed} stale mappings from scope {course_id}")
        return removed

    def purge_stale_mappings(self, course_id: int) -> int:
        """
        Drop mappings of `course_id` whose fingerprint is no longer in its content.

        Raises:
            HostUnavailableError: a host table could not be read; nothing was deleted.
        """
        return self._delete_mappings(course_id, self._stale_hashes(course_id))

    def purge_all_stale_mappings(self) -> Dict[str, int]:
        """
        Rescan every mapped scope, then prune orphans.

        Every scope is rescanned before anything is deleted, so an unreadable
        host aborts the whole purge.
        """
        try:
            stale = {scope_id: self._stale_hashes(scope_id) for scope_id in self.store.list_mapped_scopes()}
        except HostUnavailableError as e:
            logger.error(f"Mapping purge aborted, nothing deleted: {e}")
            raise

        removed = 0
        for scope_id, identifiers in stale.items():
            removed += self._delete_mappings(scope_id, identifiers)
        pruned = self.store.prune_orphans()
        return {"mappings_removed": removed, **pruned}

    def handle_scope_deleted(self, kind: str, scope_id: int,
                             course_id: Optional[int] = None) -> Dict[str, int]:
        """
        React to a host deletion event.

        Args:
            kind: 'course', 'module' or 'section'.
            scope_id: Id of the deleted object.
            course_id: Owning course, required for modules and sections.

        Raises:
            ValueError: unknown kind or missing course_id.
            HostUnavailableError: the course could not be rescanned.
        """
        if kind == COURSE:
            removed = self.store.delete_scope_mappings(scope_id)
        elif kind in (MODULE, SECTION):
            if course_id is None:
                raise ValueError(f"course_id is required when a {kind} is deleted")
            removed = self.purge_stale_mappings(course_id)
        else:
            raise ValueError(f"Unknown scope kind: {kind!r}")

        pruned = self.store.prune_orphans()
        logger.info(f"Handled deletion of {kind} {scope_id}: {removed} mappings removed, "
                    f"{pruned['records']} records pruned")
        return {"mappings_removed": removed, **pruned}
