"""
Live subscriptions: query results that follow their table.

Example:
    >>> from sqliteorm.subscriptions import SubscriptionState
    >>>
    >>> live = items.subscribe_count()
    >>> await live.start()
    >>> live.state is SubscriptionState.LIVE
    True
    >>> live.value
    0
    >>> live.close()
"""

from sqliteorm.subscriptions.base import LiveSubscription, ResultObserver, SubscriptionState
from sqliteorm.subscriptions.queries import (
    CountSubscription,
    ExistsSubscription,
    QuerySubscription,
    SingleSubscription,
)

__all__ = [
    "LiveSubscription",
    "SubscriptionState",
    "ResultObserver",
    "QuerySubscription",
    "SingleSubscription",
    "CountSubscription",
    "ExistsSubscription",
]
