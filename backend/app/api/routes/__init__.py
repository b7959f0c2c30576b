# API Routes Module
from app.api.routes import (
    admin,
    checkout,
    subscriptions,
    webhooks,
)

__all__ = [
    "admin",
    "checkout",
    "subscriptions",
    "webhooks",
]
