"""Reminder eligibility: rule tables, distance measurement and send tracking.

A rule table maps each category to its trigger points. Day-granularity
categories trigger on whole calendar days until the entry (birthday 7/3/1/0,
monthly design 3/1/0, roster 3). Meetings trigger on hour bands instead,
because reminders are checked periodically and an exact "24 hours before"
instant is never observed; each band is wide enough that one check lands in
it, and the tracker makes sure the band fires only once.

The tracker is in-process state. It is lost on restart (reminders already
sent before a restart can be sent again) and is not shared between
processes. ``ReminderTracker`` is the seam for a persistent store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Dict, FrozenSet, Iterable, Optional, Protocol, Set, Tuple, Union

from config.config import RemindersConfig
from src.reminders.classifier import Category
from src.utils.date_parser import DueInstant, days_until, hours_until
from src.utils.logger import log_debug


# Whole days for day rules, band name for hour rules
TriggerPoint = Union[int, str]


@dataclass
class EligibilityRecord:
    """Trigger points already fired for one calendar entry."""
    event_id: str
    fired: Set[TriggerPoint] = field(default_factory=set)
    last_fired: Optional[datetime] = None


@dataclass(frozen=True)
class HourBand:
    """Inclusive range of hours-until-due that counts as one trigger point."""
    name: str
    min_hours: float
    max_hours: float

    def contains(self, hours: float) -> bool:
        return self.min_hours <= hours <= self.max_hours


@dataclass(frozen=True)
class ReminderDistance:
    """Distance from "now" to an entry's due instant."""
    due: DueInstant
    days: int
    hours: float
    trigger_point: Optional[TriggerPoint]

    def describe(self) -> str:
        if isinstance(self.trigger_point, str):
            return f"{self.hours:.1f}h ({self.trigger_point})"
        return f"{self.days} day{'s' if self.days != 1 else ''}"


@dataclass(frozen=True)
class ReminderRule:
    """Trigger points of one category."""
    category: Category
    days: FrozenSet[int] = frozenset()
    hour_bands: Tuple[HourBand, ...] = ()

    @property
    def granularity(self) -> str:
        return "hours" if self.hour_bands else "days"

    @property
    def trigger_points(self) -> FrozenSet[TriggerPoint]:
        if self.hour_bands:
            return frozenset(band.name for band in self.hour_bands)
        return frozenset(self.days)

    def __contains__(self, point: object) -> bool:
        return point in self.trigger_points

    def measure(self, due: DueInstant, now: datetime, zone: tzinfo) -> ReminderDistance:
        """Compute the distance to ``due`` and the trigger point it falls on.

        For day rules the trigger point is the day count itself (membership in
        the rule is checked by the tracker). For hour rules it is the name of
        the first band containing the hours until due, or None outside all bands.
        """
        days = days_until(due, now, zone)
        hours = hours_until(due, now, zone)

        point: Optional[TriggerPoint]
        if self.hour_bands:
            point = next((band.name for band in self.hour_bands if band.contains(hours)), None)
        else:
            point = days

        return ReminderDistance(due=due, days=days, hours=hours, trigger_point=point)


class ReminderRuleTable:
    """Mapping from category to reminder rule."""

    def __init__(self, rules: Iterable[ReminderRule]):
        self._rules: Dict[Category, ReminderRule] = {rule.category: rule for rule in rules}

    @classmethod
    def from_config(cls, config: RemindersConfig) -> "ReminderRuleTable":
        rules = [
            ReminderRule(category=Category(name), days=frozenset(points))
            for name, points in config.rules.items()
            if name != Category.MEETING.value
        ]
        rules.append(ReminderRule(
            category=Category.MEETING,
            hour_bands=tuple(
                HourBand(name=w.name, min_hours=w.min_hours, max_hours=w.max_hours)
                for w in config.meeting_windows
            ),
        ))
        return cls(rules)

    @classmethod
    def default(cls) -> "ReminderRuleTable":
        return cls.from_config(RemindersConfig())

    def rule_for(self, category: Category) -> ReminderRule:
        """Rule of a category; categories without one never trigger."""
        return self._rules.get(category, ReminderRule(category=category))

    def describe(self) -> Dict[str, list]:
        described = {}
        for category, rule in self._rules.items():
            if rule.hour_bands:
                described[category.value] = [
                    {"name": b.name, "minHours": b.min_hours, "maxHours": b.max_hours}
                    for b in rule.hour_bands
                ]
            else:
                described[category.value] = sorted(rule.days, reverse=True)
        return described


class ReminderTracker(Protocol):
    """Capability deciding whether a trigger point still has to fire."""

    def is_due(self, event_id: str, distance: TriggerPoint, rule: ReminderRule) -> bool:
        ...

    def mark_fired(self, event_id: str, distance: TriggerPoint) -> None:
        ...

    def get_stats(self) -> Dict[str, int]:
        ...


class InMemoryReminderTracker:
    """Process-lifetime ``ReminderTracker`` backed by a dict."""

    def __init__(self) -> None:
        self._records: Dict[str, EligibilityRecord] = {}

    def is_due(self, event_id: str, distance: TriggerPoint, rule: ReminderRule) -> bool:
        """True iff ``distance`` is a trigger point of ``rule`` not yet fired for the entry."""
        if distance not in rule:
            return False

        record = self._records.get(event_id)
        if record and distance in record.fired:
            log_debug(f"Reminder {distance!r} already sent for {event_id}")
            return False
        return True

    def mark_fired(self, event_id: str, distance: TriggerPoint) -> None:
        """Record ``distance`` as fired for the entry (idempotent)."""
        record = self._records.setdefault(event_id, EligibilityRecord(event_id=event_id))
        record.fired.add(distance)
        record.last_fired = datetime.now(timezone.utc)

    def get_record(self, event_id: str) -> Optional[EligibilityRecord]:
        return self._records.get(event_id)

    def get_stats(self) -> Dict[str, int]:
        return {
            "totalEvents": len(self._records),
            "totalReminders": sum(len(r.fired) for r in self._records.values()),
        }

    def clear(self) -> None:
        self._records.clear()
