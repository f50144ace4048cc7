import os
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from livemarks.models import utcnow
from livemarks.services.changes import prune_change_events


scheduler = BackgroundScheduler()


def run_change_log_prune(app):
    with app.app_context():
        cutoff = utcnow() - timedelta(hours=app.config["CHANGE_RETENTION_HOURS"])
        deleted = prune_change_events(cutoff)
        if deleted:
            app.logger.info("Pruned %s change events older than %s", deleted, cutoff)
        return deleted


def start_scheduler(app):
    if not app.config.get("SCHEDULER_ENABLED", True):
        return
    if os.environ.get("WERKZEUG_RUN_MAIN") == "false":
        return

    interval_minutes = app.config["CHANGE_PRUNE_INTERVAL_MINUTES"]
    if not scheduler.get_jobs():
        scheduler.add_job(
            run_change_log_prune,
            "interval",
            minutes=interval_minutes,
            kwargs={"app": app},
            id="change_log_prune",
            replace_existing=True,
        )
        scheduler.start()
