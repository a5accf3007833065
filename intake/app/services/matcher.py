"""Keyword scoring of a question against curated knowledge base entries.

Scoring per entry:
- +2 for every entry keyword found as a substring of the lowercased question
- +1 for every question word longer than 3 characters that is also a word of
  the entry's own question

The highest strictly greater score wins, so ties keep the first entry in
dataset order. A match needs a score of at least 2.
"""

from typing import Optional, Union

from intake.app.services.knowledge_base import KnowledgeBase, KnowledgeEntry, LegalCategory

KEYWORD_WEIGHT = 2
WORD_WEIGHT = 1
MIN_WORD_LENGTH = 3  # words must be strictly longer than this
MIN_SCORE = 2


def score_entry(normalized_question: str, entry: KnowledgeEntry) -> int:
    """Score one entry against an already lowercased question."""
    score = 0

    for keyword in entry.keywords:
        if keyword in normalized_question:
            score += KEYWORD_WEIGHT

    entry_words = entry.question.lower().split()
    for word in normalized_question.split():
        if len(word) > MIN_WORD_LENGTH and word in entry_words:
            score += WORD_WEIGHT

    return score


def find_best_match(
    question_text: str,
    category: Union[LegalCategory, str, None],
    knowledge_base: KnowledgeBase,
) -> Optional[KnowledgeEntry]:
    """Return the best scoring entry of ``category``, or None below threshold.

    Pure and deterministic for a given knowledge base.
    """
    normalized = (question_text or "").lower()
    best_match: Optional[KnowledgeEntry] = None
    best_score = 0

    for entry in knowledge_base.entries_for(category):
        score = score_entry(normalized, entry)
        if score > best_score:
            best_score = score
            best_match = entry

    return best_match if best_score >= MIN_SCORE else None
