"""Reminders module: classification, eligibility and delivery of reminders."""

from src.reminders.classifier import Category, classify
from src.reminders.eligibility import InMemoryReminderTracker, ReminderRuleTable
from src.reminders.event_monitor import EventMonitor
from src.reminders.notification_dispatcher import NotificationDispatcher
from src.reminders.reminder_service import ReminderService

__all__ = [
    'Category',
    'classify',
    'InMemoryReminderTracker',
    'ReminderRuleTable',
    'ReminderService',
    'EventMonitor',
    'NotificationDispatcher',
]
