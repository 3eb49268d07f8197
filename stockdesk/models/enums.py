"""
Enumerated column values
"""
import enum


class MovementType(str, enum.Enum):
    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"
    ADJUSTMENT = "ADJUSTMENT"
    RESERVE = "RESERVE"
    RELEASE = "RELEASE"


class ReferenceType(str, enum.Enum):
    ORDER = "order"
    DELIVERY = "delivery"
    ADJUSTMENT = "adjustment"
    PURCHASE = "purchase"
    TRANSFER = "transfer"


class DeliveryKind(str, enum.Enum):
    DELIVERY = "DELIVERY"
    RETURN = "RETURN"


class OrderStatus(str, enum.Enum):
    KAYIT = "KAYIT"  # Registered
    URETIM = "ÜRETİM"  # In production
    KISMEN_HAZIR = "KISMEN HAZIR"  # Partially ready
    HAZIR = "HAZIR"  # Ready
    BITTI = "BİTTİ"  # Done
    IPTAL = "İPTAL"  # Cancelled


class Unit(str, enum.Enum):
    ADET = "adet"
    SAAT = "saat"
    KG = "kg"
    METRE = "metre"


class Currency(str, enum.Enum):
    TRY = "TRY"
    EUR = "EUR"
    USD = "USD"


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


DEFAULT_CURRENCY = Currency.TRY.value
DEFAULT_UNIT = Unit.ADET.value
