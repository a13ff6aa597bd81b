from settlement_engine.models.governorate import Governorate
from settlement_engine.models.order import Order, OrderSettlementStatus, PaymentMethod
from settlement_engine.models.provider import (
    CommissionStatus,
    DeliveryResponsibility,
    Provider,
)
from settlement_engine.models.settlement import (
    Settlement,
    SettlementDirection,
    SettlementStatus,
)
from settlement_engine.models.settlement_audit_log import AuditAction, SettlementAuditLog
from settlement_engine.models.settlement_group import SettlementFrequency, SettlementGroup
from settlement_engine.models.settlement_payment import (
    SettlementPayment,
    SettlementPaymentMethod,
)

__all__ = [
    "AuditAction",
    "CommissionStatus",
    "DeliveryResponsibility",
    "Governorate",
    "Order",
    "OrderSettlementStatus",
    "PaymentMethod",
    "Provider",
    "Settlement",
    "SettlementAuditLog",
    "SettlementDirection",
    "SettlementFrequency",
    "SettlementGroup",
    "SettlementPayment",
    "SettlementPaymentMethod",
    "SettlementStatus",
]
