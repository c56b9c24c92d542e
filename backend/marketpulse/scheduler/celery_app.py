from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from marketpulse.core.config import settings
from marketpulse.core.logging import setup_logging

app = Celery("marketpulse", include=["marketpulse.tasks.indicators"])
app.conf.broker_url = settings.CELERY_BROKER_URL
app.conf.result_backend = settings.CELERY_RESULT_BACKEND
app.conf.timezone = settings.CELERY_TIMEZONE
app.conf.enable_utc = False
# One pipeline run per worker at a time
app.conf.worker_prefetch_multiplier = 1
app.conf.task_acks_late = True

app.conf.beat_schedule = {
    "run-eod-pipeline": {
        "task": "marketpulse.tasks.indicators.run_eod_pipeline",
        "schedule": crontab(
            day_of_week=settings.EOD_PIPELINE_DAYS,
            hour=settings.EOD_PIPELINE_HOUR,
            minute=settings.EOD_PIPELINE_MINUTE,
        ),
    },
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs) -> None:
    setup_logging()
