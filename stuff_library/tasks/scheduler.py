# stuff_library/tasks/scheduler.py
from __future__ import annotations

import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger


def start_scheduler(app):
    """
    Starts the background reminder job.
    - Skipped when SCHEDULER_ENABLED is off (tests, one-off scripts).
    - Under the debug reloader only the real child process starts it.
    """
    if not app.config.get("SCHEDULER_ENABLED", True):
        app.logger.info("[scheduler] Disabled by config.")
        return None

    # Werkzeug's reloader runs two processes; WERKZEUG_RUN_MAIN=true marks the real one
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    # imported here to keep the services import graph out of app construction
    from stuff_library.tasks.return_reminders import run_return_reminder_job

    minutes = app.config.get("REMINDER_INTERVAL_MINUTES", 60)
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        func=run_return_reminder_job,
        args=[app],
        trigger=IntervalTrigger(minutes=minutes),
        id="return_reminder_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=120,
    )
    scheduler.start()
    app.logger.info(f"[scheduler] Return reminder job started (every {minutes} minutes).")

    app.extensions["apscheduler"] = scheduler
    return scheduler
