"""Batch jobs run by the scheduler endpoints."""

from mealcycle.jobs.auto_cancel import AutoCancelJob
from mealcycle.jobs.base import BatchJob, BatchResult
from mealcycle.jobs.credit_expiry import CreditExpiryJob
from mealcycle.jobs.order_generation import OrderGenerationJob
from mealcycle.jobs.payment_retry import PaymentRetryJob
from mealcycle.jobs.renewal import RenewalJob

__all__ = [
    "AutoCancelJob",
    "BatchJob",
    "BatchResult",
    "CreditExpiryJob",
    "OrderGenerationJob",
    "PaymentRetryJob",
    "RenewalJob",
]
