"""ORM models package."""
from .api_key import ApiKey, ApiScope
from .audit import AuditLog
from .base import Base
from .budget import Budget, BudgetPeriod, BudgetStatus, EmployeeBudget, PeriodType
from .cart import CartItem
from .catalog import SIZES, ProductType, ProductVariant
from .company import Company, CompanyMember, MemberRole
from .notification import Notification, NotificationType
from .order import Order, OrderItem, OrderStatus, PaymentSource
from .purchase_order import (
    PurchaseOrder,
    PurchaseOrderItem,
    PurchaseOrderItemStatus,
    PurchaseOrderStatus,
)
from .scheduled_task import ScheduledTask, ScheduledTaskStatus
from .scheduler_lock import SchedulerLock
from .user import User
from .vendor import Vendor, VendorMember

__all__ = [
    "ApiKey",
    "ApiScope",
    "AuditLog",
    "Base",
    "Budget",
    "BudgetPeriod",
    "BudgetStatus",
    "CartItem",
    "Company",
    "CompanyMember",
    "EmployeeBudget",
    "MemberRole",
    "Notification",
    "NotificationType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentSource",
    "PeriodType",
    "ProductType",
    "ProductVariant",
    "PurchaseOrder",
    "PurchaseOrderItem",
    "PurchaseOrderItemStatus",
    "PurchaseOrderStatus",
    "SIZES",
    "ScheduledTask",
    "ScheduledTaskStatus",
    "SchedulerLock",
    "User",
    "Vendor",
    "VendorMember",
]
