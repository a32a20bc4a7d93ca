from enum import Enum


# Enums for catalog mode, checkout state, order status, product categories

class CatalogMode(str, Enum):
    REMOTE = "REMOTE"
    LOCAL = "LOCAL"


class CheckoutState(str, Enum):
    IDLE = "IDLE"
    SUBMITTING = "SUBMITTING"
    PLACED = "PLACED"
    FAILED = "FAILED"


class OrderStatus(str, Enum):
    PENDING = "pending"


class ProductCategory(str, Enum):
    CCTV = "CCTV"
    ALARM_SYSTEMS = "Alarm Systems"
    ACCESS_CONTROL = "Access Control"
    FIRE_DETECTION = "Fire Detection"
    INTERCOM = "Intercom"
    NETWORKING = "Networking"
    ACCESSORIES = "Accessories"
