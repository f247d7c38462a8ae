# stuff_library/tasks/return_reminders.py
from datetime import datetime, timedelta
from flask import current_app

from stuff_library.extensions import db
from stuff_library.models.notification import NotificationType
from stuff_library.repositories.borrow_request_repo import BorrowRequestRepo
from stuff_library.repositories.notification_repo import NotificationRepo
from stuff_library.services.lending_notifier import LendingNotifier


def send_due_tomorrow_reminders(now: datetime = None) -> dict:
    """
    Reminds borrowers whose APPROVED/ACTIVE loan is due within the next 24h.
    Each request gets at most one reminder, however often the job runs.
    """
    now = now or datetime.utcnow()
    due_rows = BorrowRequestRepo.find_due_between(now, now + timedelta(days=1))

    reminded = 0
    emailed = 0
    skipped = 0
    for br in due_rows:
        # reminder already sent on an earlier run?
        if NotificationRepo.already_sent(br.id, NotificationType.ITEM_DUE_TOMORROW):
            skipped += 1
            continue

        result = LendingNotifier.return_reminder(br)
        if result["in_app"]:
            reminded += 1
        if result["email"]:
            emailed += 1

    current_app.logger.info(
        f"[reminders] due_tomorrow={len(due_rows)} reminded={reminded} "
        f"emailed={emailed} skipped={skipped}"
    )
    return {"due": len(due_rows), "reminded": reminded, "emailed": emailed, "skipped": skipped}


def run_return_reminder_job(app):
    with app.app_context():
        try:
            send_due_tomorrow_reminders()
        except Exception as e:
            db.session.rollback()
            current_app.logger.exception(f"[reminders] Error: {e}")
