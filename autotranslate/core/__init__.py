"""
Core module - Database utilities

This module provides:
- database: CRUD operations for translations, scope mappings, task progress and config
- schema: Database initialization
"""

from autotranslate.core.database import (
    DB_FILE,
    BASE_LANGUAGE,
    get_connection,
    # Translation operations
    get_translation,
    get_translations_for_hash,
    insert_translation_if_absent,
    upsert_translation,
    update_machine_text,
    mark_translations_for_revision,
    list_untranslated_hashes,
    get_base_texts,
    count_translations,
    delete_orphan_translations,
    # Scope mapping operations
    add_scope_mapping,
    scope_mapping_exists,
    get_scope_hashes,
    get_hash_scopes,
    get_mapped_scope_ids,
    delete_scope_mappings,
    delete_scope_mapping,
    delete_dangling_mappings,
    # Task progress operations
    create_task_progress,
    get_task_progress,
    get_tasks_by_status,
    update_task_progress,
    # App config operations
    get_app_config,
    set_app_config,
)

from autotranslate.core.schema import (
    DB_VERSION,
    get_db_version,
    set_db_version,
    initialize_database,
    ensure_database_indexes,
)
