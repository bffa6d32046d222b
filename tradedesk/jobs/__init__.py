# Jobs Package - Scheduled background tasks
from .payment_overdue import OverduePaymentScheduler, run_overdue_check, start_scheduler, stop_scheduler

__all__ = ["OverduePaymentScheduler", "run_overdue_check", "start_scheduler", "stop_scheduler"]
