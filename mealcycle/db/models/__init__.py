"""Database models package exports."""

from mealcycle.db.models.coupon import Coupon
from mealcycle.db.models.credit import Credit
from mealcycle.db.models.invoice import Invoice, InvoiceLineItem
from mealcycle.db.models.job_run import JobRun
from mealcycle.db.models.order import Order
from mealcycle.db.models.subscription import Subscription
from mealcycle.db.models.subscription_group import SubscriptionGroup
from mealcycle.db.models.vendor import Vendor, VendorHoliday, VendorSlotPrice

__all__ = [
    "Coupon",
    "Credit",
    "Invoice",
    "InvoiceLineItem",
    "JobRun",
    "Order",
    "Subscription",
    "SubscriptionGroup",
    "Vendor",
    "VendorHoliday",
    "VendorSlotPrice",
]
