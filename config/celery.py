import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("reservation_engine")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Отмена неподтвержденных броней после истечения удержания - каждую минуту
    "expire-pending-bookings": {
        "task": "bookings.expire_pending_bookings",
        "schedule": 60.0,  # каждые 60 секунд
        "options": {"expires": 50},
    },
    # Завершение броней после выезда - каждый час
    "complete-finished-bookings": {
        "task": "bookings.complete_finished_bookings",
        "schedule": crontab(minute=15),  # каждый час в 15 минут
    },
    # Сверка зависших платежей с Kaspi - каждые 5 минут
    "reconcile-pending-payments": {
        "task": "finances.reconcile_pending_payments",
        "schedule": crontab(minute="*/5"),
        "options": {"expires": 240},
    },
}

app.conf.timezone = "Asia/Almaty"
