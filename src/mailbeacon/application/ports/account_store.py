"""Port for the monitored-account table."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Mapping, Protocol

from mailbeacon.domain.models import Account


class AccountStore(Protocol):
    """Durable table of monitored mailboxes.

    The poller only needs ``list``, ``list_active`` and ``touch_last_check``;
    the rest backs the account API.
    """

    def list(self) -> list[Account]: ...
    def list_active(self) -> list[Account]: ...
    def touch_last_check(self, account_id: int, ts: datetime) -> None: ...

    def get(self, account_id: int) -> Account: ...
    def create(self, data: Mapping[str, Any]) -> Account: ...
    def update(self, account_id: int, data: Mapping[str, Any]) -> Account: ...
    def delete(self, account_id: int) -> None: ...
