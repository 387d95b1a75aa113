"""Store implementations."""

from mailbeacon.infrastructure.stores.factory import StoreBundle, build_stores

__all__ = [
    "StoreBundle",
    "build_stores",
]
