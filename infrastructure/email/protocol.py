"""DeliveryChannel protocol: the challenge engine depends on this, not on a mail provider."""

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol


@dataclass(frozen=True)
class CodeDelivery:
    """What the subject needs to redeem a challenge out of band."""

    purpose: str
    code: str
    expires_at: datetime
    ttl_minutes: int


class DeliveryChannel(Protocol):
    async def send(self, destination: str, payload: CodeDelivery) -> bool:
        """Deliver *payload* to *destination*; False when the transport rejected it."""
        ...
