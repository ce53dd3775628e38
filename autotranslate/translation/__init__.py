"""
Translation module - Store, render filter and fetch tasks
"""

from autotranslate.translation.store import TranslationRecord, TranslationStore
from autotranslate.translation.progress import TaskProgress, InvalidTransitionError
from autotranslate.translation.fetcher import FetchCriteria, FetchTracker
from autotranslate.translation.filter import TranslationFilter
