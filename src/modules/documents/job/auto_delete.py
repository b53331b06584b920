from apscheduler.schedulers.background import BackgroundScheduler

from modules.documents.services.cleanup import run_retention_sweep


def start_retention_job(services, interval_hours: int = 24) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()

    def job():
        run_retention_sweep(
            services.archive,
            services.tokens,
            services.signature_logs,
            token_retention_days=services.settings.token_retention_days,
        )

    scheduler.add_job(job, 'interval', hours=interval_hours, id="retention_sweep")
    scheduler.start()
    return scheduler
