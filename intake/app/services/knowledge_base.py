"""Curated knowledge base of legal questions and answers.

The dataset is a versioned JSON file shipped with the package (or pointed to
by ``KNOWLEDGE_BASE_PATH``). It is loaded once and never modified at runtime,
so a single instance is shared by all concurrent requests.
"""

import json
from enum import Enum
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from intake.app.core.config import settings
from intake.app.core.logging import get_logger

logger = get_logger(__name__)


class LegalCategory(str, Enum):
    """Closed set of legal categories.

    Values are the names used by the dataset and the classifier prompt.
    """
    CIVIL = "Civil"
    PENAL = "Penal"
    LABOR = "Laboral"
    ADMINISTRATIVE = "Administrativo"
    COMMERCIAL = "Mercantil"
    FAMILY = "Familia"

    @classmethod
    def parse(cls, value: Union["LegalCategory", str, None]) -> Optional["LegalCategory"]:
        """Return the matching category, or None for unknown values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


DEFAULT_CATEGORY = LegalCategory.CIVIL


class KnowledgeEntry(BaseModel):
    """A curated question with its answer and matching keywords."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    category: LegalCategory
    question: str = Field(..., min_length=1)
    answer: str = Field(..., min_length=1)
    keywords: Tuple[str, ...] = Field(..., min_length=1)

    @field_validator("keywords")
    @classmethod
    def normalize_keywords(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        """Keywords are matched case-insensitively; store them lowercased."""
        keywords = tuple(k.strip().lower() for k in v)
        if any(not k for k in keywords):
            raise ValueError("keywords must not be blank")
        return keywords


class KnowledgeBaseError(ValueError):
    """Raised when a dataset is malformed or violates its invariants."""


class KnowledgeBase:
    """Read-only mapping of category to curated entries.

    Entries keep dataset order, which is also the matcher's tie-break order.
    """

    def __init__(
        self,
        entries: Dict[LegalCategory, Tuple[KnowledgeEntry, ...]],
        version: str = "unversioned",
    ):
        for category, bucket in entries.items():
            seen: set[str] = set()
            for entry in bucket:
                if entry.category is not category:
                    raise KnowledgeBaseError(
                        f"Entry {entry.id!r} has category {entry.category.value!r} "
                        f"but is stored under {category.value!r}"
                    )
                if entry.id in seen:
                    raise KnowledgeBaseError(
                        f"Duplicate entry id {entry.id!r} in category {category.value!r}"
                    )
                seen.add(entry.id)
        self._entries = {category: tuple(bucket) for category, bucket in entries.items()}
        self.version = version

    def entries_for(
        self, category: Union[LegalCategory, str, None]
    ) -> Tuple[KnowledgeEntry, ...]:
        """Entries stored under ``category``; empty for unknown categories."""
        parsed = LegalCategory.parse(category)
        if parsed is None:
            return ()
        return self._entries.get(parsed, ())

    def __iter__(self) -> Iterator[KnowledgeEntry]:
        for bucket in self._entries.values():
            yield from bucket

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._entries.values())

    @classmethod
    def from_dict(cls, data: dict) -> "KnowledgeBase":
        """Build a knowledge base from the dataset's JSON structure.

        Raises:
            KnowledgeBaseError: If the structure, a category or an entry is invalid
        """
        if not isinstance(data, dict):
            raise KnowledgeBaseError("Dataset must be a JSON object")
        raw_categories = data.get("categories")
        if not isinstance(raw_categories, dict):
            raise KnowledgeBaseError("Dataset must contain a 'categories' object")

        entries: Dict[LegalCategory, Tuple[KnowledgeEntry, ...]] = {}
        for name, raw_entries in raw_categories.items():
            category = LegalCategory.parse(name)
            if category is None:
                raise KnowledgeBaseError(f"Unknown category {name!r} in dataset")
            if not isinstance(raw_entries, list):
                raise KnowledgeBaseError(f"Category {name!r} must hold a list of entries")
            try:
                entries[category] = tuple(
                    KnowledgeEntry.model_validate(raw) for raw in raw_entries
                )
            except ValidationError as e:
                raise KnowledgeBaseError(f"Invalid entry in category {name!r}: {e}") from e

        return cls(entries, version=str(data.get("version", "unversioned")))


def _read_dataset(path: Optional[str]) -> dict:
    if path:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    dataset = resources.files("intake.app").joinpath("data/knowledge_base.json")
    return json.loads(dataset.read_text(encoding="utf-8"))


def load_knowledge_base(path: Optional[str] = None) -> KnowledgeBase:
    """Load and validate a knowledge base dataset.

    Args:
        path: Dataset file; defaults to settings.knowledge_base_path, then the
            packaged dataset

    Raises:
        KnowledgeBaseError: If the dataset is malformed
    """
    source = path or settings.knowledge_base_path or None
    try:
        data = _read_dataset(source)
    except json.JSONDecodeError as e:
        raise KnowledgeBaseError(f"Knowledge base is not valid JSON: {e}") from e

    knowledge_base = KnowledgeBase.from_dict(data)
    logger.info(
        f"Knowledge base loaded: {len(knowledge_base)} entries",
        extra={"version": knowledge_base.version, "dataset": source or "packaged"},
    )
    return knowledge_base


@lru_cache(maxsize=1)
def get_knowledge_base() -> KnowledgeBase:
    """Process-wide knowledge base, loaded on first use."""
    return load_knowledge_base()
