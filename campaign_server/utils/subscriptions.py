"""In-process live subscriptions to campaign documents.

The store publishes the fresh document after every successful write; each
subscriber callback receives the whole campaign (or ``None`` when it no
longer exists). Delivery happens on the writer's thread, in subscription
order, with no ordering guarantee between distinct writers.
"""
import itertools
import threading
from collections import defaultdict
from typing import Any, Callable, Dict, Optional

from campaign_logs.loggers import campaign_logger

Callback = Callable[[Optional[dict]], Any]
Unsubscribe = Callable[[], None]


class CampaignSubscriptions:
    def __init__(self):
        self._callbacks: Dict[str, Dict[int, Callback]] = defaultdict(dict)
        self._tokens = itertools.count()
        self._lock = threading.Lock()

    def subscribe(self, campaign_id: str, callback: Callback) -> Unsubscribe:
        token = next(self._tokens)
        with self._lock:
            self._callbacks[campaign_id][token] = callback

        def unsubscribe():
            with self._lock:
                callbacks = self._callbacks.get(campaign_id)
                if callbacks is not None:
                    callbacks.pop(token, None)
                    if not callbacks:
                        del self._callbacks[campaign_id]

        return unsubscribe

    def subscriber_count(self, campaign_id: str) -> int:
        with self._lock:
            return len(self._callbacks.get(campaign_id, {}))

    def publish(self, campaign_id: str, campaign: Optional[dict]) -> None:
        with self._lock:
            callbacks = list(self._callbacks.get(campaign_id, {}).values())

        for callback in callbacks:
            try:
                callback(campaign)
            except Exception as e:
                campaign_logger.error(
                    "subscription_callback_failed",
                    campaign_id=campaign_id,
                    error=str(e)
                )


hub = CampaignSubscriptions()


def subscribe_to_campaign(campaign_id: str, callback: Callback) -> Unsubscribe:
    """Deliver the current document right away, then every change."""
    from campaign_server.utils.db_access import get_campaign

    unsubscribe = hub.subscribe(campaign_id, callback)
    callback(get_campaign(campaign_id))
    return unsubscribe


def subscribe_to_cards(campaign_id: str, callback: Callable[[list], Any]) -> Unsubscribe:
    return subscribe_to_campaign(campaign_id, lambda c: callback(c["cards"] if c else []))


def subscribe_to_card(campaign_id: str, card_id: str, callback: Callable[[Optional[dict]], Any]) -> Unsubscribe:
    def _on_cards(cards):
        callback(next((card for card in cards if card.get("id") == card_id), None))
    return subscribe_to_cards(campaign_id, _on_cards)


def subscribe_to_packs(campaign_id: str, callback: Callable[[list], Any]) -> Unsubscribe:
    return subscribe_to_campaign(campaign_id, lambda c: callback(c["packs"] if c else []))


def subscribe_to_players(campaign_id: str, callback: Callable[[dict], Any]) -> Unsubscribe:
    return subscribe_to_campaign(campaign_id, lambda c: callback(c["players"] if c else {}))


def subscribe_to_card_showcase(campaign_id: str, callback: Callable[[list], Any]) -> Unsubscribe:
    return subscribe_to_campaign(campaign_id, lambda c: callback(c["cardShowcase"] if c else []))
