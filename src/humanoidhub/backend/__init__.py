"""Capabilities of the hosted backend and their implementations."""

from humanoidhub.backend.base import (
    AuthCapability,
    CurrentUser,
    Filter,
    FilterOp,
    ObjectEntry,
    ObjectStoreCapability,
    Order,
    PageRange,
    RecordStoreCapability,
)

__all__ = [
    "AuthCapability",
    "CurrentUser",
    "Filter",
    "FilterOp",
    "ObjectEntry",
    "ObjectStoreCapability",
    "Order",
    "PageRange",
    "RecordStoreCapability",
]
