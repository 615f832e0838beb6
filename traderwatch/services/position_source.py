"""Position snapshot source interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class OpenPosition:
    """One open position as reported by the exchange."""
    position_id: str
    symbol: str
    side: str
    size: str
    price: str
    leverage: str
    open_time: str  # millisecond epoch timestamp, as a string
    contract_id: str = ""
    trader_name: str = ""
    raw: dict[str, Any] = field(default_factory=dict)


class PositionSource(ABC):
    """Returns the complete list of open positions for one trader.

    Implementations raise PositionFetchError on any transport or parse
    failure; they never return a partial snapshot.
    """

    @abstractmethod
    async def fetch_open_positions(self, trader_id: str) -> list[OpenPosition]:
        ...

    async def close(self):
        """Release network resources."""
