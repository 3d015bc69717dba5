from .admission_gate import AdmissionGate
from .shop_status_service import ShopStatus, ShopStatusResolver
from .shop_settings_service import ShopSettingsService
from .payment_service import PaymentService
from .vnpay import VNPayGateway

__all__ = [
    "AdmissionGate",
    "ShopStatus",
    "ShopStatusResolver",
    "ShopSettingsService",
    "PaymentService",
    "VNPayGateway",
]
