"""In-memory cache for sender-key records."""

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from ..sender_keys import SenderKeyRecord


class SenderKeyCache:
    """Cache of sender-key records keyed by (channel id, sender id)."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], "SenderKeyRecord"] = {}

    def store(self, record: "SenderKeyRecord") -> None:
        self._records[(record.channel_id, record.sender_id)] = record

    def retrieve(self, channel_id: str, sender_id: str) -> Optional["SenderKeyRecord"]:
        return self._records.get((channel_id, sender_id))

    def invalidate(self, channel_id: str, sender_id: str) -> None:
        self._records.pop((channel_id, sender_id), None)

    def clear(self) -> None:
        self._records.clear()

    def __contains__(self, item: tuple) -> bool:
        return item in self._records
