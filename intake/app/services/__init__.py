"""Services package for the intake service.

This package provides:
- The curated knowledge base and its keyword matcher
- Keyword category detection
- The AI classifier client and the triage orchestrator
"""

from intake.app.services.category_detector import detect_category
from intake.app.services.knowledge_base import (
    KnowledgeBase,
    KnowledgeEntry,
    LegalCategory,
    get_knowledge_base,
    load_knowledge_base,
)
from intake.app.services.matcher import find_best_match

__all__ = [
    "KnowledgeBase",
    "KnowledgeEntry",
    "LegalCategory",
    "detect_category",
    "find_best_match",
    "get_knowledge_base",
    "load_knowledge_base",
]
