"""
MedGuide Predicate Matcher
Keyword, condition and age primitives shared by every rule category
"""

from typing import Iterable, Optional


def matches_keyword(name: str, keywords: Iterable[str]) -> bool:
    """
    Case-insensitive substring match of a medication name against keywords.

    Substring, not token, semantics: "warfarin" matches "Warfarin 2mg" and
    would also match "Antiwarfarin".

    Args:
        name: Free-text medication name
        keywords: Keywords to look for

    Returns:
        True if any lowercased keyword occurs in the lowercased, trimmed name
    """
    normalized = name.strip().lower()
    return any(keyword.lower() in normalized for keyword in keywords)


def matches_condition(conditions: Iterable[str], keywords: Iterable[str]) -> bool:
    """True if any patient condition label contains any of the keywords"""
    keywords = list(keywords)
    return any(matches_keyword(condition, keywords) for condition in conditions)


def age_gate(patient_age: int, age_min: Optional[int] = None) -> bool:
    """Passes when the rule has no minimum age or the patient meets it"""
    return age_min is None or patient_age >= age_min
