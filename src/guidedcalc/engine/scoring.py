"""Bounded name-compatibility score shared by the novelty tools."""

import re
from typing import Optional

MIN_SCORE = 5
MAX_SCORE = 98
_NAME_RE = re.compile(r"^[a-zA-Z ]+$")
_VOWELS = set("aeiou")


def char_sum(text: str) -> int:
    """Sum of letter positions (a=1 ... z=26), ignoring anything else."""
    return sum(ord(c) - 96 for c in text.lower() if "a" <= c <= "z")


def digital_root(n: int) -> int:
    while n > 9:
        n = sum(int(d) for d in str(n))
    return n


def vowel_count(text: str) -> int:
    return sum(1 for c in text.lower() if c in _VOWELS)


def shared_letter_bonus(a: str, b: str) -> int:
    # every letter of b also present in a scores 3, duplicates included
    letters_a = set(a.lower())
    hits = sum(1 for c in b.lower() if "a" <= c <= "z" and c in letters_a)
    return min(hits * 3, 20)


def compatibility_score(a: str, b: str) -> int:
    score = 40
    score += 4 * (10 - abs(digital_root(char_sum(a)) - digital_root(char_sum(b))))
    score += 10 - abs(vowel_count(a) - vowel_count(b))
    score += shared_letter_bonus(a, b)
    return min(max(round(score), MIN_SCORE), MAX_SCORE)


def score_bucket(score: int) -> str:
    if score >= 90:
        return "high"
    if score >= 70:
        return "good"
    if score >= 50:
        return "mid"
    if score >= 30:
        return "low"
    return "breakup"


def validate_name(name: str) -> Optional[str]:
    """Return an error message, or None when the name is usable."""
    text = (name or "").strip()
    if not text:
        return "Name cannot be empty."
    if not _NAME_RE.match(text):
        return "Only letters and spaces are allowed."
    if len(text) > 40:
        return "That name is longer than most relationships 😌"
    return None
