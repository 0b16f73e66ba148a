from enum import Enum

# ------------------ USER ROLES ------------------
class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

# ------------------ DELIVERY ------------------
class DeliveryChannel(str, Enum):
    SMS = "sms"
    EMAIL = "email"
