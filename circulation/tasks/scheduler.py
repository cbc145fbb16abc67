# circulation/tasks/scheduler.py
from __future__ import annotations

import os


def start_scheduler(app):
    """
    Background jobs: expiration sweep and overdue check.
    - Jobs run inside an app context (DB access needs it).
    - In debug, only the reloader's main process starts the scheduler.
    - SCHEDULER_ENABLED=0 (tests, or when an external cron calls
      /scheduled/sweep) skips it entirely.
    """
    if not app.config.get("SCHEDULER_ENABLED", True):
        app.logger.info("[scheduler] disabled by config.")
        return None

    # Werkzeug reloader runs two processes; WERKZEUG_RUN_MAIN=true marks the real one
    if app.debug and os.environ.get("WERKZEUG_RUN_MAIN") != "true":
        app.logger.info("[scheduler] Debug reloader secondary process: scheduler skipped.")
        return None

    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.interval import IntervalTrigger

    # imported here to keep circular imports away from create_app
    from circulation.tasks.expiration_sweep import run_sweep_job
    from circulation.tasks.overdue_check import run_overdue_check_job

    scheduler = BackgroundScheduler(timezone="UTC")

    sweep_minutes = app.config.get("SWEEP_INTERVAL_MINUTES", 5)
    overdue_minutes = app.config.get("OVERDUE_CHECK_INTERVAL_MINUTES", 60)

    scheduler.add_job(
        func=run_sweep_job,
        args=[app],
        trigger=IntervalTrigger(minutes=sweep_minutes),
        id="expiration_sweep_job",
        replace_existing=True,
        max_instances=1,        # never overlap a running sweep
        coalesce=True,          # missed runs collapse into one
        misfire_grace_time=120
    )
    scheduler.add_job(
        func=run_overdue_check_job,
        args=[app],
        trigger=IntervalTrigger(minutes=overdue_minutes),
        id="overdue_check_job",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300
    )

    scheduler.start()
    app.logger.info(
        f"[scheduler] started: sweep every {sweep_minutes} min, overdue check every {overdue_minutes} min."
    )

    app.extensions["apscheduler"] = scheduler
    return scheduler


def shutdown_scheduler(app):
    sch = app.extensions.get("apscheduler")
    if sch and getattr(sch, "running", False):
        sch.shutdown(wait=False)
        app.logger.info("[scheduler] Scheduler shutdown.")
