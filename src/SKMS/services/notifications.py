# src/SKMS/services/notifications.py
"""
Email templates and the outbox writer.

Nothing here talks to SMTP. ``enqueue`` only adds an ``OutboundEmail`` row to
the caller's session, so the email commits (or rolls back) together with the
state change that produced it; the dispatcher delivers it later.
"""
from __future__ import annotations

from html import escape
from typing import Mapping, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from SKMS.app_logger import get_logger
from SKMS.core.clock import as_utc
from SKMS.models import Assessment, BudgetStatus, OutboundEmail, Skill, User

log = get_logger("notifications")

CATEGORY_BUDGET_DECISION = "budget_decision"
CATEGORY_SKILL_REMINDER = "skill_reminder"
CATEGORY_ASSESSMENT_PUBLISHED = "assessment_published"
CATEGORY_FEEDBACK_SUMMARY = "feedback_summary"

_FOOTER = (
    '<div style="margin-top: 20px; padding-top: 20px; border-top: 1px solid #eee;">'
    '<p style="color: #666; font-size: 0.9em;">'
    "This is an automated message. Please do not reply to this email."
    "</p></div>"
)


def _wrap(title: str, body: str) -> str:
    return (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        f'<h2 style="color: #2c3e50;">{escape(title)}</h2>'
        f"{body}{_FOOTER}</div>"
    )


def _fmt_dt(value) -> str:
    return as_utc(value).strftime("%Y-%m-%d %H:%M UTC")


# -------- templates --------
def budget_decision_email(skill: Skill) -> Tuple[str, str]:
    budget = skill.budget
    decision = budget.status.value
    subject = f"Budget {decision.capitalize()} - {skill.name}"

    if budget.status == BudgetStatus.REJECTED:
        outcome = (
            '<div style="background-color: #fff3f3; padding: 15px; border-radius: 5px; margin: 20px 0;">'
            '<h3 style="color: #e74c3c; margin-top: 0;">Reason for Rejection:</h3>'
            f"<p>{escape(budget.rejection_reason or '')}</p>"
            "<p>Please review and resubmit your budget addressing the above concerns.</p>"
            "</div>"
        )
    else:
        outcome = (
            '<div style="background-color: #f1f8e9; padding: 15px; border-radius: 5px; margin: 20px 0;">'
            '<h3 style="color: #4caf50; margin-top: 0;">Next Steps:</h3>'
            "<p>You can now proceed with conducting the skill sessions as planned.</p>"
            "</div>"
        )

    body = (
        "<p>Dear Faculty,</p>"
        f'<p>Your budget submission for skill "{escape(skill.name)}" has been {decision}.</p>'
        f"{outcome}"
        '<div style="margin-top: 20px;"><p><strong>Budget Details:</strong></p><ul>'
        f"<li>Number of Venues: {budget.number_of_venues}</li>"
        f"<li>Number of Students: {budget.number_of_students}</li>"
        f"<li>Amount: {budget.amount}</li>"
        "</ul></div>"
    )
    return subject, _wrap("Budget Review Update", body)


def skill_reminder_email(skill: Skill) -> Tuple[str, str]:
    subject = f"Reminder: {skill.name} starts tomorrow"
    body = (
        "<p>Dear Student,</p>"
        f"<p>This is a reminder that your enrolled skill session <strong>{escape(skill.name)}</strong> "
        "starts tomorrow.</p>"
        '<div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 20px 0;">'
        '<h3 style="color: #2c3e50; margin-top: 0;">Session Details:</h3>'
        '<ul style="list-style-type: none; padding: 0;">'
        f"<li><strong>Starts:</strong> {_fmt_dt(skill.start_date)}</li>"
        f"<li><strong>Venue:</strong> {escape(skill.venue)}</li>"
        f"<li><strong>Until:</strong> {_fmt_dt(skill.end_date)}</li>"
        "</ul></div>"
        "<p>Please ensure you arrive at the venue on time.</p>"
    )
    return subject, _wrap("Skill Session Reminder", body)


def assessment_published_email(assessment: Assessment, student: User) -> Tuple[str, str]:
    subject = f"Assessment Scheduled: {assessment.title}"
    body = (
        f"<p>Dear {escape(student.name)},</p>"
        "<p>An assessment has been scheduled for your enrolled skill.</p>"
        '<div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 20px 0;">'
        '<h3 style="color: #2c3e50; margin-top: 0;">Assessment Details:</h3>'
        '<ul style="list-style-type: none; padding: 0;">'
        f"<li><strong>Title:</strong> {escape(assessment.title)}</li>"
        f"<li><strong>Start Time:</strong> {_fmt_dt(assessment.start_time)}</li>"
        f"<li><strong>Duration:</strong> {assessment.duration} minutes</li>"
        f"<li><strong>Total Points:</strong> {assessment.total_points}</li>"
        "</ul></div>"
        "<p>Please be prepared and ensure you have a stable internet connection during the assessment.</p>"
    )
    return subject, _wrap("Assessment Notification", body)


def feedback_summary_email(skill: Skill, faculty: User, stats: Mapping) -> Tuple[str, str]:
    subject = f"Feedback Summary: {skill.name}"
    distribution = "".join(
        f'<li style="margin-left: 20px;">{rating} stars: {count} responses</li>'
        for rating, count in sorted(stats["rating_distribution"].items())
    )
    body = (
        f"<p>Dear {escape(faculty.name)},</p>"
        f"<p>Here's a summary of student feedback for your skill: {escape(skill.name)}</p>"
        '<div style="background-color: #f8f9fa; padding: 15px; border-radius: 5px; margin: 20px 0;">'
        '<h3 style="color: #2c3e50; margin-top: 0;">Feedback Statistics:</h3>'
        '<ul style="list-style-type: none; padding: 0;">'
        f"<li><strong>Average Rating:</strong> {stats['average_rating']:.1f}/5</li>"
        f"<li><strong>Total Responses:</strong> {stats['total_responses']}</li>"
        "<li><strong>Rating Distribution:</strong></li>"
        f"{distribution}"
        "</ul></div>"
        "<p>You can view detailed feedback and comments in the skill management portal.</p>"
    )
    return subject, _wrap("Skill Feedback Summary", body)


# -------- outbox --------
def enqueue(db: AsyncSession, recipient: str, subject: str, html: str, category: str) -> OutboundEmail:
    """Stage one email in the current transaction."""
    row = OutboundEmail(recipient=recipient, subject=subject, html=html, category=category)
    db.add(row)
    log.debug("outbox: queued %s for %s", category, recipient)
    return row
