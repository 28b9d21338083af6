"""
Background scheduler - runs periodic jobs inside the FastAPI process.

Jobs:
  - Current period sweep (daily 00:05 UTC)
  - Source period horizon (Mondays 01:00 UTC)
  - Recurring budget extension (1st of the month 02:00 UTC)
"""
import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True, timezone="UTC")


def _run_current_period_sweep():
    from famfin.infrastructure.db.session import get_session_factory
    from famfin.application.source_periods import UpdateCurrentPeriodsUseCase

    Session = get_session_factory()
    db = Session()
    try:
        UpdateCurrentPeriodsUseCase(db).execute()
    except Exception:
        logger.exception("Current period sweep job failed")
    finally:
        db.close()


def _run_ensure_source_periods():
    from famfin.infrastructure.db.session import get_session_factory
    from famfin.application.source_periods import EnsureSourcePeriodsUseCase

    Session = get_session_factory()
    db = Session()
    try:
        EnsureSourcePeriodsUseCase(db).execute()
    except Exception:
        logger.exception("Source period horizon job failed")
    finally:
        db.close()


def _run_budget_extension():
    from famfin.infrastructure.db.session import get_session_factory
    from famfin.application.budget_extension import ExtendRecurringBudgetsUseCase

    Session = get_session_factory()
    db = Session()
    try:
        ExtendRecurringBudgetsUseCase(db).execute()
    except Exception:
        logger.exception("Recurring budget extension job failed")
    finally:
        db.close()


def start_scheduler():
    """Start the background scheduler with all periodic jobs."""
    scheduler.add_job(
        _run_current_period_sweep,
        CronTrigger(hour=0, minute=5),
        id="current_period_sweep",
        replace_existing=True,
    )

    scheduler.add_job(
        _run_ensure_source_periods,
        CronTrigger(day_of_week="mon", hour=1, minute=0),
        id="ensure_source_periods",
        replace_existing=True,
    )

    scheduler.add_job(
        _run_budget_extension,
        CronTrigger(day=1, hour=2, minute=0),
        id="extend_recurring_budgets",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started: current_period_sweep (00:05 UTC), ensure_source_periods (Mon 01:00 UTC), "
        "extend_recurring_budgets (day 1 02:00 UTC)"
    )


def shutdown_scheduler():
    """Gracefully stop the scheduler."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
