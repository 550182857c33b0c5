from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Any, Iterable, Mapping

from marketdash.core.utils import iso_now


def order_ids(orders: Iterable[Mapping[str, Any]]) -> frozenset[str]:
    return frozenset(str(order["id"]) for order in orders if order.get("id"))


def diff_new_order_ids(
    previous: AbstractSet[str],
    current: Iterable[Mapping[str, Any]],
    *,
    bootstrapped: bool,
) -> frozenset[str]:
    """Ids present in ``current`` but not in ``previous``.

    Before the first completed poll (``bootstrapped`` is False) nothing is new:
    every order already in the store would otherwise be reported at once.
    """
    if not bootstrapped:
        return frozenset()
    return order_ids(current) - frozenset(previous)


@dataclass(frozen=True)
class SnapshotState:
    order_ids: frozenset[str] = frozenset()
    bootstrapped: bool = False
    taken_at: str | None = None

    @classmethod
    def initial(cls) -> "SnapshotState":
        return cls()

    def replaced_with(self, orders: Iterable[Mapping[str, Any]]) -> "SnapshotState":
        return SnapshotState(order_ids=order_ids(orders), bootstrapped=True, taken_at=iso_now())
