from .auto_delete import start_retention_job

__all__ = ['start_retention_job']
