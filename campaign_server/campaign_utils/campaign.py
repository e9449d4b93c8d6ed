"""Helpers over the raw campaign document.

A campaign document is a plain dict shaped like::

    {"name": str, "players": {player_id: player}, "cards": [card],
     "packs": [pack], "shop": {key: item}, "cardShowcase": [card_id]}

Catalog references held elsewhere in the document are not enforced, so every
resolver here drops ids that no longer exist in ``cards``.
"""
from typing import Any, Dict, List, Optional, Tuple

from campaign_server.card_utils.card import usage_label


def empty_campaign(name: str) -> Dict[str, Any]:
    return {
        "name": name,
        "players": {},
        "cards": [],
        "packs": [],
        "shop": {},
        "cardShowcase": [],
    }


def normalize_players(players: Any) -> Tuple[Dict[str, dict], bool]:
    """Return the players mapping and whether it had to be converted.

    Older documents stored players as a list of dicts carrying their own
    "id"; those are keyed by that id.
    """
    if players is None:
        return {}, False
    if isinstance(players, list):
        converted = {}
        for player in players:
            player = dict(player)
            player_id = player.pop("id", None)
            if player_id:
                converted[player_id] = player
        return converted, True
    return players, False


def cards_by_id(cards: List[dict]) -> Dict[str, dict]:
    return {card["id"]: card for card in cards if card.get("id")}


def find_card(cards: List[dict], card_id: str) -> Optional[dict]:
    return cards_by_id(cards).get(card_id)


def find_pack(packs: List[dict], pack_id: str) -> Optional[dict]:
    return next((pack for pack in packs if pack.get("id") == pack_id), None)


def resolve_inventory(player: dict, cards: List[dict]) -> List[Dict[str, Any]]:
    catalog = cards_by_id(cards)
    resolved = []
    for key, owned in (player.get("Cards") or {}).items():
        card = catalog.get(owned.get("cardId"))
        if card is None:
            continue
        times_used = owned.get("timesUsed", 0)
        resolved.append({
            "key": key,
            "timesUsed": times_used,
            "usageLabel": usage_label(times_used, card.get("usage")),
            "card": card,
        })
    # by card name, copies of one card by inventory key
    resolved.sort(key=lambda entry: (entry["card"].get("name", ""), entry["key"]))
    return resolved


def resolve_shop(shop: Optional[dict], cards: List[dict]) -> List[Dict[str, Any]]:
    catalog = cards_by_id(cards)
    return [
        {"key": key, "price": item.get("price"), "card": catalog[item.get("cardId")]}
        for key, item in (shop or {}).items()
        if item.get("cardId") in catalog
    ]


def resolve_cards(card_ids: Optional[List[str]], cards: List[dict]) -> List[dict]:
    """Map ids to catalog cards, keeping order and duplicates."""
    catalog = cards_by_id(cards)
    return [catalog[card_id] for card_id in (card_ids or []) if card_id in catalog]
