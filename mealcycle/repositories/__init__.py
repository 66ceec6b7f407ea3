"""Repository layer package."""

from mealcycle.repositories.credit_repo import CreditRepo
from mealcycle.repositories.group_repo import GroupRepo
from mealcycle.repositories.invoice_repo import InvoiceRepo
from mealcycle.repositories.job_run_repo import JobRunRepo
from mealcycle.repositories.order_repo import OrderRepo
from mealcycle.repositories.paging import PageKey
from mealcycle.repositories.subscription_repo import SubscriptionRepo
from mealcycle.repositories.vendor_repo import CouponRepo, VendorRepo

__all__ = [
    "CouponRepo",
    "CreditRepo",
    "GroupRepo",
    "InvoiceRepo",
    "JobRunRepo",
    "OrderRepo",
    "PageKey",
    "SubscriptionRepo",
    "VendorRepo",
]
