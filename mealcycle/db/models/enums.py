"""Enumerated status and category values shared by the billing models."""
from __future__ import annotations

import enum


class BillingPeriod(str, enum.Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Slot(str, enum.Enum):
    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"


class GroupStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled"


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    VOID = "void"


class CreditReason(str, enum.Enum):
    CUSTOMER_SKIP = "customer_skip"
    VENDOR_HOLIDAY = "vendor_holiday"
    AUTO_CANCEL = "auto_cancel"
    CUSTOMER_CANCEL = "customer_cancel"
    MANUAL_ADJUSTMENT = "manual_adjustment"


class CreditStatus(str, enum.Enum):
    AVAILABLE = "available"
    CONSUMED = "consumed"
    EXPIRED = "expired"
    CONVERTED = "converted"


class OrderStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    SKIPPED = "skipped"
    CANCELLED = "cancelled"


class DiscountType(str, enum.Enum):
    PERCENT = "percent"
    FLAT = "flat"


class JobType(str, enum.Enum):
    RENEWAL = "renewal"
    PAYMENT_RETRY = "payment_retry"
    ORDER_GENERATION = "order_generation"
    AUTO_CANCEL = "pause_auto_cancel"
    CREDIT_EXPIRY = "credit_expiry"


class JobStatus(str, enum.Enum):
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
