"""
Submission quality checks.

Two layers:
- validation (blocking): bullet count and length rules
- low-effort heuristics (advisory): filler phrases, copy of yesterday, duplicates

Validation failures short-circuit; heuristics only run on valid input.
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Set

from ibdaily.core.constants import (
    MAX_BULLET_LENGTH,
    MIN_BULLET_LENGTH,
    MIN_BULLETS,
    SIMILARITY_THRESHOLD,
)
from ibdaily.models.submission import QualityCheckResult

FILLER_PHRASES = (
    "idk",
    "i don't know",
    "i dont know",
    "same as yesterday",
    "nothing",
    "nothing new",
    "n/a",
    "na",
    "none",
    "no idea",
    "whatever",
    "stuff",
    "things",
    "blah",
    "asdf",
    "test",
    "testing",
    "xxx",
    "abc",
    "123",
)

# ASCII word characters only; everything else becomes a separator.
_NON_WORD = re.compile(r"[^A-Za-z0-9_\s]")


def tokenize(text: str) -> List[str]:
    """Lowercase, strip punctuation, keep words longer than two characters."""
    cleaned = _NON_WORD.sub(" ", text.lower())
    return [token for token in cleaned.split() if len(token) > 2]


def jaccard_similarity(first: Iterable[str], second: Iterable[str]) -> float:
    set_a: Set[str] = set(first)
    set_b: Set[str] = set(second)
    if not set_a and not set_b:
        return 1.0
    if not set_a or not set_b:
        return 0.0
    return len(set_a & set_b) / len(set_a | set_b)


def get_similarity_score(bullets_a: Sequence[str], bullets_b: Sequence[str]) -> float:
    return jaccard_similarity(tokenize(" ".join(bullets_a)), tokenize(" ".join(bullets_b)))


def contains_filler_phrase(bullet: str) -> bool:
    lower = bullet.strip().lower()
    for filler in FILLER_PHRASES:
        if lower == filler or lower.startswith(filler + " ") or lower.endswith(" " + filler):
            return True
    return False


def validate_bullets(
    bullets: Sequence[str],
    *,
    min_bullets: int = MIN_BULLETS,
    min_length: int = MIN_BULLET_LENGTH,
    max_length: int = MAX_BULLET_LENGTH,
) -> List[str]:
    """Blocking validation. An empty list means the bullets may be stored."""
    non_empty = [b for b in bullets if b.strip()]
    if len(non_empty) < min_bullets:
        return [f"At least {min_bullets} bullets must be non-empty"]

    errors: List[str] = []
    for index, raw in enumerate(bullets, start=1):
        bullet = raw.strip()
        if not bullet:
            continue
        if len(bullet) < min_length:
            errors.append(f"Bullet {index} must be at least {min_length} characters (currently {len(bullet)})")
        if len(bullet) > max_length:
            errors.append(f"Bullet {index} must be at most {max_length} characters (currently {len(bullet)})")
    return errors


def check_low_effort(
    bullets: Sequence[str],
    yesterday_bullets: Optional[Sequence[str]] = None,
    *,
    similarity_threshold: float = SIMILARITY_THRESHOLD,
) -> List[str]:
    """Advisory heuristics. Each triggered rule adds one reason."""
    reasons: List[str] = []

    for index, raw in enumerate(bullets, start=1):
        if raw.strip() and contains_filler_phrase(raw):
            reasons.append(f"Bullet {index} contains filler phrase")

    if yesterday_bullets:
        similarity = get_similarity_score(bullets, yesterday_bullets)
        if similarity >= similarity_threshold:
            reasons.append(f"Very similar to yesterday's submission ({round(similarity * 100)}% overlap)")

    normalized = [b.strip().lower() for b in bullets if b.strip()]
    if len(set(normalized)) < len(normalized):
        reasons.append("Contains duplicate bullets")

    return reasons


def check_submission_quality(
    bullets: Sequence[str],
    yesterday_bullets: Optional[Sequence[str]] = None,
) -> QualityCheckResult:
    """
    Combined verdict. Validation errors also yield LOW_EFFORT, so callers must
    look at ``validation_errors`` first to decide whether to block the write.
    """
    validation_errors = validate_bullets(bullets)
    if validation_errors:
        return QualityCheckResult(status="LOW_EFFORT", reasons=[], validation_errors=validation_errors)

    reasons = check_low_effort(bullets, yesterday_bullets)
    return QualityCheckResult(
        status="LOW_EFFORT" if reasons else "GOOD",
        reasons=reasons,
        validation_errors=[],
    )
