"""Event classification for calendar entries.

Titles are produced either by the provisioning workflows (which decorate
them with a category emoji) or typed by hand in the calendar, so matching is
keyword based and case-insensitive. Rules are evaluated in order and the
first match wins; anything unmatched is ``Category.CUSTOM``.
"""

import re
from datetime import date
from enum import Enum
from typing import Callable, List, Optional, Tuple


class Category(str, Enum):
    """Closed set of entry categories."""
    BIRTHDAY = "birthday"
    MONTHLY_DESIGN = "monthly_design"
    MEETING = "meeting"
    ROSTER = "roster"
    CUSTOM = "custom"


Predicate = Callable[[str, str], bool]


def _title_has(*keywords: str) -> Predicate:
    return lambda title, description: any(k in title for k in keywords)


def _title_or_description_has(*keywords: str) -> Predicate:
    return lambda title, description: any(k in title or k in description for k in keywords)


# (category, predicate over lowercased title and description), in priority order
CLASSIFICATION_RULES: List[Tuple[Category, Predicate]] = [
    (Category.BIRTHDAY, _title_has("birthday", "🎂")),
    (Category.MONTHLY_DESIGN, _title_has("new month", "🎨", "🎊")),
    (Category.MEETING, _title_has("meeting", "📅")),
    (Category.ROSTER, lambda title, description: (
        _title_or_description_has("roster")(title, description) or "📋" in title
    )),
]


def classify(title: str, description: Optional[str] = None) -> Category:
    """Map an entry's title and description to a category."""
    lower_title = (title or "").lower()
    lower_description = (description or "").lower()

    for category, predicate in CLASSIFICATION_RULES:
        if predicate(lower_title, lower_description):
            return category
    return Category.CUSTOM


_BIRTHDAY_WORD = re.compile(r"birthday", re.IGNORECASE)
_DECORATION = re.compile(r"[^\w\s'’.-]")
_POSSESSIVE = re.compile(r"['’]s?\s*$", re.IGNORECASE)
_DESIGN_MONTH = re.compile(r"design\s*-?\s*(\w+)", re.IGNORECASE)
_NEW_MONTH = re.compile(r"new month\s*-\s*(\w+)", re.IGNORECASE)

DEFAULT_BIRTHDAY_NAME = "Team Member"


def extract_birthday_name(title: str) -> str:
    """Pull the celebrant's name out of "🎂 Ada's Birthday"."""
    name = _DECORATION.sub("", title or "")
    name = _BIRTHDAY_WORD.sub("", name).strip()
    name = _POSSESSIVE.sub("", name)
    name = " ".join(name.split())
    return name or DEFAULT_BIRTHDAY_NAME


def extract_design_month(title: str, today: Optional[date] = None) -> str:
    """Pull the month out of "🎨 Happy New Month Design - March".

    Falls back to the month and year of ``today`` ("March 2026") when the
    title names no month; callers pass the team's local date.
    """
    for pattern in (_DESIGN_MONTH, _NEW_MONTH):
        match = pattern.search(title or "")
        if match:
            return match.group(1)

    today = today or date.today()
    return today.strftime("%B %Y")
