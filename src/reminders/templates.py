"""WhatsApp message templates, one family per category.

Text uses WhatsApp markdown: ``*bold*`` and ``_italic_``.
"""

from typing import Optional


def signature(team_name: str) -> str:
    return f"_{team_name} Reminder 🙏_"


def render_birthday(name: str, date_str: str, days_until: int, team_name: str) -> str:
    if days_until == 0:
        body = (
            f"🎉🎂 *BIRTHDAY TODAY!* 🎂🎉\n\n"
            f"Happy Birthday *{name}*! 🥳🎊\n\n"
            f"🎨 *URGENT ACTION REQUIRED:*\n"
            f"• Birthday design needed TODAY!\n"
            f"• Designers, please create and share ASAP\n"
            f"• Post across all social media platforms\n\n"
            f"Let's make {name}'s day special! ❤️"
        )
    elif days_until == 1:
        body = (
            f"⏰ *REMINDER: Birthday Tomorrow!*\n\n"
            f"🎂 *{name}'s* birthday is TOMORROW ({date_str})\n\n"
            f"🎨 *Action Items for Today:*\n"
            f"✅ Create birthday design\n"
            f"✅ Get design approved\n"
            f"✅ Prepare birthday message\n"
            f"✅ Schedule post for tomorrow\n\n"
            f"Time is running out! ⏳"
        )
    elif days_until == 3:
        body = (
            f"📅 *Birthday Alert - 3 Days*\n\n"
            f"🎂 *{name}'s* birthday is in 3 days ({date_str})\n\n"
            f"🎨 *This Week's Tasks:*\n"
            f"📌 Start planning birthday design\n"
            f"📌 Assign designer\n"
            f"📌 Gather photos/materials\n"
            f"📌 Brainstorm creative ideas\n\n"
            f"Let's make it memorable! 🌟"
        )
    else:
        body = (
            f"📢 *Upcoming Birthday - {days_until} Days*\n\n"
            f"🎂 *{name}'s* birthday: {date_str}\n\n"
            f"📝 *Note:* Mark your calendar!\n"
            f"We'll send more reminders as the date approaches."
        )
    return f"{body}\n\n{signature(team_name)}"


def render_monthly_design(month: str, days_until: int, team_name: str) -> str:
    if days_until == 0:
        body = (
            f"🎨 *NEW MONTH DESIGN - TODAY!*\n\n"
            f"📅 It's the 1st of *{month}*!\n\n"
            f"🚨 *URGENT:* Happy New Month design must be posted TODAY!\n\n"
            f"✅ *Final Checklist:*\n"
            f"• Design completed? ✓\n"
            f"• Approved by leadership? ✓\n"
            f"• Posted on all platforms? ✓\n"
            f"• Instagram, Facebook, WhatsApp Status? ✓\n\n"
            f"Let's start the month with excellence! 🚀"
        )
    elif days_until == 1:
        body = (
            f"⏰ *URGENT: New Month Design Due Tomorrow!*\n\n"
            f"📅 {month} begins TOMORROW!\n\n"
            f"🎨 *Action Required TODAY:*\n"
            f"✅ Finalize \"Happy New Month\" design\n"
            f"✅ Get final approval\n"
            f"✅ Prepare captions/messages\n"
            f"✅ Schedule for posting tomorrow morning\n\n"
            f"Last chance to prepare! ⏳"
        )
    else:
        body = (
            f"🗓️ *New Month Design Reminder*\n\n"
            f"📅 {month} begins in *{days_until} days*\n\n"
            f"🎨 *This Week's Tasks:*\n"
            f"• Create \"Happy New Month\" design\n"
            f"• Choose theme/color scheme\n"
            f"• Draft message/caption\n"
            f"• Submit for approval\n"
            f"• Prepare for all platforms\n\n"
            f"Time to get creative! 💡✨"
        )
    return f"{body}\n\n{signature(team_name)}"


def render_meeting(title: str, time_str: str, hours_until: float, team_name: str) -> str:
    if hours_until <= 1.5:
        soon = "less than an hour" if hours_until < 1 else "about 1 hour"
        body = (
            f"⏰ *MEETING STARTING SOON!*\n\n"
            f"📅 *{title}*\n"
            f"🕐 {time_str}\n\n"
            f"⚡ *Starts in {soon}!*\n\n"
            f"Please be on time! 🏃‍♂️"
        )
    elif hours_until <= 36:
        body = (
            f"📅 *Meeting Reminder - Tomorrow*\n\n"
            f"*{title}*\n"
            f"🕐 {time_str}\n\n"
            f"⏰ Starts in {round(hours_until)} hours\n\n"
            f"📝 Come prepared!"
        )
    else:
        days = -(-int(hours_until) // 24)
        body = (
            f"📌 *Upcoming Meeting*\n\n"
            f"*{title}*\n"
            f"🕐 {time_str}\n\n"
            f"📅 In {days} day{'s' if days > 1 else ''}\n\n"
            f"Mark your calendar! 📝"
        )
    return f"{body}\n\n{signature(team_name)}"


def render_roster(program_name: str, due_date: str, days_until: int, team_name: str) -> str:
    body = (
        f"📋 *ROSTER UPDATE NEEDED*\n\n"
        f"🎯 *Program:* {program_name}\n"
        f"📅 *Roster Due:* {due_date}\n"
        f"⏰ *Due in:* {days_until} day{'s' if days_until != 1 else ''}\n\n"
        f"*Action Required:*\n"
        f"✅ Create/update roster\n"
        f"✅ Assign team members & roles\n"
        f"✅ Confirm availability\n"
        f"✅ Share with entire team\n"
        f"✅ Get confirmations\n\n"
        f"Team leads, please handle this ASAP! ⚡"
    )
    return f"{body}\n\n{signature(team_name)}"


def render_custom(
    title: str,
    date_str: str,
    days_until: int,
    team_name: str,
    description: Optional[str] = None
) -> str:
    when = "TODAY" if days_until == 0 else f"in {days_until} day{'s' if days_until != 1 else ''}"
    body = (
        f"📢 *EVENT REMINDER*\n\n"
        f"*{title}*\n\n"
        f"📅 *Date:* {date_str} ({when})"
    )
    if description:
        body += f"\n📝 *Details:* {description.strip()}"
    body += "\n\nMedia Team, please ensure all materials are ready!"
    return f"{body}\n\n{signature(team_name)}"


def render_broadcast(title: str, message: str, team_name: str) -> str:
    """Operator-composed message sent from the dashboard."""
    return f"📢 *{title}*\n\n{message}\n\n{signature(team_name)}"


def render_test_message() -> str:
    return (
        "✅ *System Test Message*\n\n"
        "Your Media Reminder System is working!\n\n"
        "🎉 All systems operational:\n"
        "✓ WhatsApp connection active\n"
        "✓ Google Calendar synced\n"
        "✓ Reminder system ready\n\n"
        "You'll receive automatic reminders for:\n"
        "🎂 Birthdays\n"
        "🎨 Monthly designs\n"
        "📅 Meetings\n"
        "📋 Rosters\n\n"
        "_Test completed successfully! 🙏_"
    )
