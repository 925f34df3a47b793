from celery import Celery

from app.core.config import get_settings

settings = get_settings()

celery_app = Celery("merch_api", broker=settings.redis_url, backend=settings.redis_url)


@celery_app.task(name="app.tasks.run_legacy_migration")
def run_legacy_migration_task() -> dict:
    from app.business.migration.engine import MigrationEngine

    return MigrationEngine().run().as_dict()
