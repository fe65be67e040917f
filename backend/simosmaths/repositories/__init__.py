"""Data store access: one module per table family, plain async functions over the pool."""

from . import children, exercises, payments, profiles, subscriptions, videos

__all__ = ["children", "exercises", "payments", "profiles", "subscriptions", "videos"]
