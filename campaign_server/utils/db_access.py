import json
import sqlite3
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterable, List, Optional

from campaign_logs.loggers import campaign_logger, pack_logger, shop_logger
from campaign_server.campaign_utils.campaign import (
    empty_campaign,
    find_card,
    find_pack,
    normalize_players,
)
from campaign_server.campaign_utils.player import Player
from campaign_server.campaign_utils.shop import ShopItem, ShopItemPatch
from campaign_server.card_utils.card import PlayingCard
from campaign_server.card_utils.pack import Pack, PackCardEntry
from campaign_server.config import DB_PATH
from campaign_server.errors import (
    DuplicateEntryError,
    DuplicateNameError,
    PlayerNotFoundError,
)
from campaign_server.utils.subscriptions import hub

# document field -> Campaigns column. Every column but `name` holds JSON.
FIELD_COLUMNS = {
    "name": "name",
    "players": "players",
    "cards": "cards",
    "packs": "packs",
    "shop": "shop",
    "cardShowcase": "card_showcase",
}

FIELD_DEFAULTS = {
    "players": dict,
    "cards": list,
    "packs": list,
    "shop": dict,
    "cardShowcase": list,
}


def new_id() -> str:
    return str(uuid.uuid4())


def get_db_connection():
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row  # Allows accessing columns by name
    return conn


def init_db():
    """Create the Campaigns table if it does not exist yet."""
    if not DB_PATH.parent.exists():
        DB_PATH.parent.mkdir(parents=True)

    conn = get_db_connection()
    try:
        # One row per campaign document; each top-level field is its own
        # column so a write replaces a single field wholesale.
        conn.execute("""
        CREATE TABLE IF NOT EXISTS Campaigns (
            id TEXT NOT NULL PRIMARY KEY,
            name TEXT NOT NULL,
            players TEXT NOT NULL DEFAULT '{}',
            cards TEXT NOT NULL DEFAULT '[]',
            packs TEXT NOT NULL DEFAULT '[]',
            shop TEXT NOT NULL DEFAULT '{}',
            card_showcase TEXT NOT NULL DEFAULT '[]',
            created_at TEXT DEFAULT CURRENT_TIMESTAMP
        );
        """)
        conn.commit()
    finally:
        conn.close()

    campaign_logger.info("db_initialized", path=str(DB_PATH.resolve()))


@contextmanager
def campaign_transaction():
    """
    Read-modify-write scope. BEGIN IMMEDIATE takes the write lock before the
    read, so two writers on the same file run one after the other.
    """
    conn = get_db_connection()
    try:
        conn.execute("BEGIN IMMEDIATE")
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _decode(field: str, raw: Any) -> Any:
    if field == "name":
        return raw
    if raw is None or raw == "":
        return FIELD_DEFAULTS[field]()
    return json.loads(raw)


def _row_to_campaign(row: sqlite3.Row) -> Dict[str, Any]:
    campaign = {"id": row["id"]}
    for field, column in FIELD_COLUMNS.items():
        campaign[field] = _decode(field, row[column])
    return campaign


def _read_field(conn, campaign_id: str, field: str) -> Any:
    """Return one decoded field of a campaign, or None if the campaign is missing."""
    column = FIELD_COLUMNS[field]
    row = conn.execute(f"SELECT {column} FROM Campaigns WHERE id = ?", (campaign_id,)).fetchone()
    if row is None:
        return None
    value = _decode(field, row[column])
    if field == "players":
        value, _ = normalize_players(value)
    return value


def _write_field(conn, campaign_id: str, field: str, value: Any) -> None:
    column = FIELD_COLUMNS[field]
    encoded = value if field == "name" else json.dumps(value, ensure_ascii=False)
    conn.execute(f"UPDATE Campaigns SET {column} = ? WHERE id = ?", (encoded, campaign_id))


def _publish(campaign_id: str) -> None:
    if hub.subscriber_count(campaign_id):
        hub.publish(campaign_id, get_campaign(campaign_id))


# ---------------------------------------------------------------------------
# campaigns
# ---------------------------------------------------------------------------

def create_campaign(name: str) -> str:
    campaign_id = new_id()
    doc = empty_campaign(name)
    conn = get_db_connection()
    try:
        conn.execute("""
            INSERT INTO Campaigns (id, name, players, cards, packs, shop, card_showcase)
            VALUES (?, ?, ?, ?, ?, ?, ?)
        """, (
            campaign_id,
            doc["name"],
            json.dumps(doc["players"]),
            json.dumps(doc["cards"]),
            json.dumps(doc["packs"]),
            json.dumps(doc["shop"]),
            json.dumps(doc["cardShowcase"]),
        ))
        conn.commit()
    finally:
        conn.close()

    campaign_logger.info("campaign_created", campaign_id=campaign_id, name=name)
    return campaign_id


def get_campaign(campaign_id: str) -> Optional[Dict[str, Any]]:
    """
    Fetch one campaign document. A legacy players list is converted to the
    id -> player mapping and written back.
    """
    conn = get_db_connection()
    try:
        row = conn.execute("SELECT * FROM Campaigns WHERE id = ?", (campaign_id,)).fetchone()
        if row is None:
            return None
        campaign = _row_to_campaign(row)
        players, converted = normalize_players(campaign["players"])
        if converted:
            campaign["players"] = players
            _write_field(conn, campaign_id, "players", players)
            conn.commit()
            campaign_logger.info("campaign_players_migrated", campaign_id=campaign_id, count=len(players))
        return campaign
    finally:
        conn.close()


def get_campaigns() -> List[Dict[str, Any]]:
    conn = get_db_connection()
    try:
        rows = conn.execute("SELECT * FROM Campaigns ORDER BY created_at").fetchall()
    finally:
        conn.close()
    campaigns = []
    for row in rows:
        campaign = _row_to_campaign(row)
        campaign["players"], _ = normalize_players(campaign["players"])
        campaigns.append(campaign)
    return campaigns


def get_campaign_list() -> List[Dict[str, str]]:
    conn = get_db_connection()
    try:
        rows = conn.execute("SELECT id, name FROM Campaigns ORDER BY created_at").fetchall()
        return [{"id": row["id"], "name": row["name"]} for row in rows]
    finally:
        conn.close()


def _get_field(campaign_id: str, field: str, default=None):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return default
    return campaign[field]


# ---------------------------------------------------------------------------
# cards
# ---------------------------------------------------------------------------

def get_cards(campaign_id: str) -> List[dict]:
    return _get_field(campaign_id, "cards", [])


def get_card_info(campaign_id: str, card_id: str) -> Optional[dict]:
    return find_card(get_cards(campaign_id), card_id)


def upsert_card(campaign_id: str, card: PlayingCard) -> Optional[str]:
    """
    Replace the card with the same id, or append it as a new card.
    A new card may not reuse the name of an existing one.
    Returns the card id, or None when the campaign does not exist.
    """
    doc = card.to_document()
    if not doc.get("id"):
        doc["id"] = new_id()

    with campaign_transaction() as conn:
        cards = _read_field(conn, campaign_id, "cards")
        if cards is None:
            return None

        index = next((i for i, c in enumerate(cards) if c.get("id") == doc["id"]), -1)
        if index != -1:
            cards[index] = doc
        else:
            if any(c.get("name") == doc["name"] for c in cards):
                raise DuplicateNameError("Card with this name already exists.")
            cards.append(doc)

        _write_field(conn, campaign_id, "cards", cards)

    campaign_logger.info(
        "card_upserted",
        campaign_id=campaign_id,
        card_id=doc["id"],
        name=doc["name"],
        created=index == -1
    )
    _publish(campaign_id)
    return doc["id"]


def remove_card(campaign_id: str, card_id: str) -> bool:
    with campaign_transaction() as conn:
        cards = _read_field(conn, campaign_id, "cards")
        if cards is None:
            return False
        _write_field(conn, campaign_id, "cards", [c for c in cards if c.get("id") != card_id])

    campaign_logger.info("card_removed", campaign_id=campaign_id, card_id=card_id)
    _publish(campaign_id)
    return True


def import_cards(campaign_id: str, cards: Iterable[PlayingCard]) -> Optional[Dict[str, List[str]]]:
    """
    Upsert a batch of cards (a catalog backup) in one write.
    Returns dict with the names added, updated and skipped (duplicate names).
    """
    results = {
        "added": [],
        "updated": [],
        "skipped": [],
    }

    with campaign_transaction() as conn:
        existing = _read_field(conn, campaign_id, "cards")
        if existing is None:
            return None

        for card in cards:
            doc = card.to_document()
            if not doc.get("id"):
                doc["id"] = new_id()
            index = next((i for i, c in enumerate(existing) if c.get("id") == doc["id"]), -1)
            if index != -1:
                existing[index] = doc
                results["updated"].append(doc["name"])
            elif any(c.get("name") == doc["name"] for c in existing):
                results["skipped"].append(doc["name"])
            else:
                existing.append(doc)
                results["added"].append(doc["name"])

        _write_field(conn, campaign_id, "cards", existing)

    campaign_logger.info(
        "cards_imported",
        campaign_id=campaign_id,
        added_count=len(results["added"]),
        updated_count=len(results["updated"]),
        skipped_count=len(results["skipped"])
    )
    _publish(campaign_id)
    return results


# ---------------------------------------------------------------------------
# packs
# ---------------------------------------------------------------------------

def get_packs(campaign_id: str) -> List[dict]:
    return _get_field(campaign_id, "packs", [])


def get_pack_info(campaign_id: str, pack_id: str) -> Optional[dict]:
    return find_pack(get_packs(campaign_id), pack_id)


def get_pack_contents(campaign_id: str, pack_id: str) -> List[dict]:
    pack = get_pack_info(campaign_id, pack_id)
    return pack["cardPool"] if pack else []


def upsert_pack(campaign_id: str, pack: Pack) -> Optional[str]:
    """Replace the pack with the same id or append it. Pack names are unique."""
    doc = pack.to_document()
    if not doc.get("id"):
        doc["id"] = new_id()

    with campaign_transaction() as conn:
        packs = _read_field(conn, campaign_id, "packs")
        if packs is None:
            return None

        if any(p.get("name") == doc["name"] and p.get("id") != doc["id"] for p in packs):
            raise DuplicateNameError("Pack with this name already exists.")

        index = next((i for i, p in enumerate(packs) if p.get("id") == doc["id"]), -1)
        if index != -1:
            packs[index] = doc
        else:
            packs.append(doc)

        _write_field(conn, campaign_id, "packs", packs)

    pack_logger.info(
        "pack_upserted",
        campaign_id=campaign_id,
        pack_id=doc["id"],
        name=doc["name"],
        pool_size=len(doc["cardPool"])
    )
    _publish(campaign_id)
    return doc["id"]


def modify_pack_contents(campaign_id: str, pack_id: str, card_id: str, action: str) -> bool:
    """Add a card to a pack pool with weight 1, or remove it."""
    if action not in ("add", "remove"):
        raise ValueError(f"Unknown pack contents action: {action}")

    with campaign_transaction() as conn:
        packs = _read_field(conn, campaign_id, "packs")
        if packs is None:
            return False
        pack = find_pack(packs, pack_id)
        if pack is None:
            return False

        pool = pack.get("cardPool", [])
        if action == "add":
            if any(entry.get("cardId") == card_id for entry in pool):
                raise DuplicateEntryError("Card is already in the pack.")
            entry = PackCardEntry(card_id=card_id, weight=1)
            pack["cardPool"] = pool + [entry.model_dump(by_alias=True)]
        else:
            pack["cardPool"] = [entry for entry in pool if entry.get("cardId") != card_id]

        _write_field(conn, campaign_id, "packs", packs)

    pack_logger.info(
        "pack_contents_modified",
        campaign_id=campaign_id,
        pack_id=pack_id,
        card_id=card_id,
        action=action
    )
    _publish(campaign_id)
    return True


# ---------------------------------------------------------------------------
# players
# ---------------------------------------------------------------------------

def get_campaign_players(campaign_id: str) -> Dict[str, dict]:
    return _get_field(campaign_id, "players", {})


def get_player(campaign_id: str, player_id: str) -> Optional[dict]:
    return get_campaign_players(campaign_id).get(player_id)


def get_player_cards(campaign_id: str, player_id: str) -> Dict[str, dict]:
    player = get_player(campaign_id, player_id)
    return player.get("Cards", {}) if player else {}


def upsert_player(campaign_id: str, player: Player, player_id: Optional[str] = None) -> Optional[str]:
    """
    Without `player_id` the player is added under a fresh id; with one, the
    existing player is replaced. Replacing an unknown id is an error.
    Returns the player id, or None when the campaign does not exist.
    """
    with campaign_transaction() as conn:
        players = _read_field(conn, campaign_id, "players")
        if players is None:
            return None

        if player_id is None:
            player_id = new_id()
            while player_id in players:
                player_id = new_id()
            created = True
        elif player_id in players:
            created = False
        else:
            raise PlayerNotFoundError("Player could not be upserted")

        players[player_id] = player.to_document()
        _write_field(conn, campaign_id, "players", players)

    campaign_logger.info(
        "player_upserted",
        campaign_id=campaign_id,
        player_id=player_id,
        name=player.name,
        created=created
    )
    _publish(campaign_id)
    return player_id


def change_player_balance(campaign_id: str, player_id: str, amount: int) -> Optional[int]:
    """Add `amount` (negative to subtract) to a balance. Returns the new balance."""
    with campaign_transaction() as conn:
        players = _read_field(conn, campaign_id, "players")
        if players is None or player_id not in players:
            return None

        updated = Player.model_validate(players[player_id])
        updated.balance += amount
        players[player_id] = updated.to_document()
        _write_field(conn, campaign_id, "players", players)

    shop_logger.info(
        "player_balance_changed",
        campaign_id=campaign_id,
        player_id=player_id,
        amount=amount,
        balance=updated.balance
    )
    _publish(campaign_id)
    return updated.balance


def modify_player_cards(campaign_id: str, player_id: str, action: str,
                        card_key: Optional[str] = None) -> Optional[str]:
    """
    `add`: store catalog card `card_key` under a fresh inventory key.
    `remove`: delete inventory key `card_key`.
    Returns the inventory key touched, or None when nothing was written.
    """
    if action not in ("add", "remove"):
        raise ValueError(f"Unknown player cards action: {action}")
    if not card_key:
        return None

    with campaign_transaction() as conn:
        players = _read_field(conn, campaign_id, "players")
        if players is None or player_id not in players:
            return None

        inventory = players[player_id].setdefault("Cards", {})
        if action == "add":
            inventory_key = new_id()
            inventory[inventory_key] = {"cardId": card_key, "timesUsed": 0}
        else:
            if card_key not in inventory:
                return None
            inventory_key = card_key
            del inventory[card_key]

        _write_field(conn, campaign_id, "players", players)

    campaign_logger.info(
        "player_cards_modified",
        campaign_id=campaign_id,
        player_id=player_id,
        action=action,
        inventory_key=inventory_key
    )
    _publish(campaign_id)
    return inventory_key


def add_card_usage(campaign_id: str, player_id: str, card_key: str, amount: int) -> bool:
    with campaign_transaction() as conn:
        players = _read_field(conn, campaign_id, "players")
        if players is None or player_id not in players:
            return False
        owned = players[player_id].get("Cards", {}).get(card_key)
        if owned is None:
            return False

        owned["timesUsed"] = owned.get("timesUsed", 0) + amount
        _write_field(conn, campaign_id, "players", players)

    campaign_logger.info(
        "card_usage_added",
        campaign_id=campaign_id,
        player_id=player_id,
        inventory_key=card_key,
        amount=amount,
        times_used=owned["timesUsed"]
    )
    _publish(campaign_id)
    return True


# ---------------------------------------------------------------------------
# shop & showcase
# ---------------------------------------------------------------------------

def get_shop(campaign_id: str) -> Dict[str, dict]:
    return _get_field(campaign_id, "shop", {})


def modify_shop(campaign_id: str, action: str, payload: Optional[Any] = None,
                key: Optional[str] = None) -> Optional[str]:
    """
    `add` stores a ShopItem under a fresh key, `remove` deletes `key`,
    `update` merges a ShopItemPatch into the item at `key`.
    Returns the key touched, or None when the action did not apply.
    """
    if action not in ("add", "update", "remove"):
        raise ValueError(f"Unknown shop action: {action}")

    with campaign_transaction() as conn:
        shop = _read_field(conn, campaign_id, "shop")
        if shop is None:
            return None

        if action == "add" and payload is not None and payload.price is not None:
            key = new_id()
            shop[key] = ShopItem.model_validate(payload.to_document()).model_dump(by_alias=True)
        elif action == "remove" and key is not None:
            if key not in shop:
                return None
            del shop[key]
        elif action == "update" and payload is not None and key is not None:
            shop[key] = {**shop.get(key, {}), **payload.to_document()}
        else:
            return None

        _write_field(conn, campaign_id, "shop", shop)

    shop_logger.info("shop_modified", campaign_id=campaign_id, action=action, key=key)
    _publish(campaign_id)
    return key


def get_card_showcase(campaign_id: str) -> List[str]:
    return _get_field(campaign_id, "cardShowcase", [])


def set_card_showcase(campaign_id: str, card_ids: Optional[List[str]] = None) -> bool:
    """Set the cards displayed to every client; no ids clears the showcase."""
    card_ids = list(card_ids or [])
    with campaign_transaction() as conn:
        if _read_field(conn, campaign_id, "name") is None:
            return False
        _write_field(conn, campaign_id, "cardShowcase", card_ids)

    campaign_logger.info("card_showcase_set", campaign_id=campaign_id, count=len(card_ids))
    _publish(campaign_id)
    return True
