from .differ import SnapshotState, diff_new_order_ids, order_ids
from .highlights import HIGHLIGHT_WINDOW_SECONDS, HighlightTracker
from .poller import CycleResult, OrderPoller
from .store_names import StoreNameCache

__all__ = [
    "SnapshotState",
    "diff_new_order_ids",
    "order_ids",
    "HIGHLIGHT_WINDOW_SECONDS",
    "HighlightTracker",
    "CycleResult",
    "OrderPoller",
    "StoreNameCache",
]
