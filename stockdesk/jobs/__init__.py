# Jobs Package - Scheduled background tasks
from .maintenance import MaintenanceScheduler, start_scheduler, stop_scheduler

__all__ = ["MaintenanceScheduler", "start_scheduler", "stop_scheduler"]
