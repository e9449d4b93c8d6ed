from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Body, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import Any, Literal, Optional
from urllib.parse import quote
import asyncio
import contextlib
import json

#logging stuff
from campaign_logs.loggers import server_logger, pack_logger, shop_logger
from campaign_logs.endpoints import router as logs_router
from campaign_logs.middleware import RequestLoggingMiddleware

from campaign_server.config import CORS_ORIGINS, HOST, PORT
from campaign_server.errors import (
    CampaignError,
    DuplicateEntryError,
    DuplicateNameError,
    EmptyPoolError,
    PlayerNotFoundError,
)
from campaign_server.server_classes import (
    CreateCampaign,
    PackContentsRequest,
    OpenPackRequest,
    BalanceRequest,
    PlayerCardsRequest,
    RandomCardRequest,
    CardUsageRequest,
    ShopRequest,
    ShowcaseRequest,
)
from campaign_server.card_utils.card import PlayingCard, RARITIES, tag_vocabulary
from campaign_server.card_utils.pack import Pack, generate_pack_contents, pick_random_card
from campaign_server.card_utils.pack_utils import backup_filename, cards_from_json
from campaign_server.card_utils.card_filters import filter_cards, sort_cards, paginate, unique_values
from campaign_server.campaign_utils.campaign import (
    find_pack,
    resolve_cards,
    resolve_inventory,
    resolve_shop,
)
from campaign_server.campaign_utils.player import Player
from campaign_server.utils.subscriptions import hub

# import our DB access functions
from campaign_server.utils.db_access import (
    init_db,
    create_campaign,
    get_campaign,
    get_campaign_list,
    upsert_card,
    remove_card,
    import_cards,
    upsert_pack,
    modify_pack_contents,
    upsert_player,
    change_player_balance,
    modify_player_cards,
    add_card_usage,
    modify_shop,
    set_card_showcase,
)

app = FastAPI(title="Campaign Deck Builder")
app.include_router(logs_router)


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware, logger=server_logger)

ERROR_STATUS = {
    DuplicateNameError: 409,
    DuplicateEntryError: 409,
    PlayerNotFoundError: 404,
    EmptyPoolError: 400,
}


# startup functions
@app.on_event("startup")
async def startup_event():
    init_db()
    server_logger.info("startup_complete")


@app.exception_handler(CampaignError)
async def campaign_error_handler(request: Request, exc: CampaignError):
    status = ERROR_STATUS.get(type(exc), 400)

    #log code
    server_logger.warning(
        "campaign_error",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=str(exc)
    )

    return JSONResponse(status_code=status, content={"error": str(exc)})


def campaign_not_found(campaign_id: str) -> JSONResponse:
    server_logger.warning("campaign_not_found", campaign_id=campaign_id)
    return JSONResponse(status_code=404, content={"error": "Campaign not found"})


def not_updated(campaign_id: str) -> JSONResponse:
    """Mutations on a missing player/pack/entry are no-ops, not errors."""
    if get_campaign(campaign_id) is None:
        return campaign_not_found(campaign_id)
    return JSONResponse(status_code=200, content={"updated": False})


def catalog_of(campaign: dict) -> list:
    # stored cards are trusted documents; only id and rarity matter to a draw
    return [PlayingCard.model_construct(**card) for card in campaign["cards"]]


def download(payload: Any, filename: str) -> JSONResponse:
    return JSONResponse(
        status_code=200,
        content=payload,
        headers={"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"}
    )


@app.get("/")
async def read_root():
    return {"status": "ok", "service": "campaign-deck-builder"}


# ---------------------------------------------------------------------------
# campaigns
# ---------------------------------------------------------------------------

@app.post("/campaigns")
async def create_campaign_endpoint(req: CreateCampaign):
    campaign_id = create_campaign(req.name)
    return JSONResponse(status_code=201, content={"id": campaign_id, "name": req.name})


@app.get("/campaigns")
async def list_campaigns():
    return {"campaigns": get_campaign_list()}


@app.get("/campaigns/{campaign_id}")
async def read_campaign(campaign_id: str):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    return campaign


@app.get("/campaigns/{campaign_id}/export")
async def export_campaign(campaign_id: str):
    """Full campaign snapshot as a JSON file download."""
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)

    #log code
    server_logger.info("campaign_exported", campaign_id=campaign_id)

    return download(campaign, backup_filename(campaign["name"]))


@app.get("/campaigns/{campaign_id}/vocabulary")
async def read_vocabulary(campaign_id: str):
    """Tags, types and categories in use, for editor autocompletion."""
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    cards = campaign["cards"]
    return {
        "tags": tag_vocabulary(cards),
        "types": unique_values(cards, "type"),
        "categories": unique_values(cards, "category"),
        "rarities": RARITIES,
    }


# ---------------------------------------------------------------------------
# cards
# ---------------------------------------------------------------------------

@app.get("/campaigns/{campaign_id}/cards")
async def list_cards(
    campaign_id: str,
    rarity: Optional[int] = None,
    category: Optional[str] = None,
    card_type: Optional[str] = Query(None, alias="type"),
    tag: Optional[str] = None,
    search: Optional[str] = None,
    sort: Literal["name", "rarity"] = "name",
    page: int = Query(0, ge=0),
    per_page: Optional[int] = Query(None, ge=1, le=500)
):
    """Catalog with optional filters; `search` ignores case and accents."""
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)

    filtered = sort_cards(
        filter_cards(campaign["cards"], rarity=rarity, category=category,
                     card_type=card_type, tag=tag, search=search),
        sort
    )
    return {
        "cards": paginate(filtered, page, per_page),
        "total": len(filtered),
        "page": page,
    }


@app.get("/campaigns/{campaign_id}/cards/export")
async def export_cards(campaign_id: str):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)

    #log code
    server_logger.info("cards_exported", campaign_id=campaign_id, count=len(campaign["cards"]))

    return download(campaign["cards"], backup_filename(campaign["name"]))


@app.post("/campaigns/{campaign_id}/cards/import")
async def import_cards_endpoint(campaign_id: str, payload: Any = Body(...)):
    """Upsert every card of a backup (a card list or a campaign snapshot)."""
    try:
        cards = cards_from_json(payload)
    except ValueError as e:
        server_logger.warning("cards_import_invalid", campaign_id=campaign_id, error=str(e))
        return JSONResponse(status_code=400, content={"error": str(e)})

    results = import_cards(campaign_id, cards)
    if results is None:
        return campaign_not_found(campaign_id)
    return {
        "message": "Card import complete",
        **results,
        "summary": {
            "added_count": len(results["added"]),
            "updated_count": len(results["updated"]),
            "skipped_count": len(results["skipped"]),
        }
    }


@app.get("/campaigns/{campaign_id}/cards/{card_id}")
async def read_card(campaign_id: str, card_id: str):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    card = next((c for c in campaign["cards"] if c.get("id") == card_id), None)
    if card is None:
        return JSONResponse(status_code=404, content={"error": "Card not found"})
    return card


@app.put("/campaigns/{campaign_id}/cards")
async def upsert_card_endpoint(campaign_id: str, card: PlayingCard):
    card_id = upsert_card(campaign_id, card)
    if card_id is None:
        return campaign_not_found(campaign_id)
    return {"id": card_id}


@app.delete("/campaigns/{campaign_id}/cards/{card_id}")
async def remove_card_endpoint(campaign_id: str, card_id: str):
    if not remove_card(campaign_id, card_id):
        return campaign_not_found(campaign_id)
    return {"removed": card_id}


# ---------------------------------------------------------------------------
# packs
# ---------------------------------------------------------------------------

@app.get("/campaigns/{campaign_id}/packs")
async def list_packs(campaign_id: str):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    return {"packs": campaign["packs"]}


@app.put("/campaigns/{campaign_id}/packs")
async def upsert_pack_endpoint(campaign_id: str, pack: Pack):
    pack_id = upsert_pack(campaign_id, pack)
    if pack_id is None:
        return campaign_not_found(campaign_id)
    return {"id": pack_id}


@app.post("/campaigns/{campaign_id}/packs/{pack_id}/cards")
async def modify_pack_contents_endpoint(campaign_id: str, pack_id: str, req: PackContentsRequest):
    if not modify_pack_contents(campaign_id, pack_id, req.card_id, req.action):
        return not_updated(campaign_id)
    return {"updated": True}


@app.post("/campaigns/{campaign_id}/packs/{pack_id}/open")
async def open_pack(campaign_id: str, pack_id: str, req: Optional[OpenPackRequest] = None):
    """Draw the contents of a pack. Nothing is written: the DM hands the
    drawn cards out afterwards, up to `picksPerPack` of them."""
    req = req or OpenPackRequest()

    #log code
    pack_logger.info(
        "open_pack_attempt",
        campaign_id=campaign_id,
        pack_id=pack_id,
        preset_random=req.preset_random
    )

    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)

    pack_doc = find_pack(campaign["packs"], pack_id)
    if pack_doc is None:

        #log code
        pack_logger.warning("open_pack_not_found", campaign_id=campaign_id, pack_id=pack_id)

        return JSONResponse(status_code=404, content={"error": "Pack not found"})

    pack = Pack.model_validate(pack_doc)
    card_ids = generate_pack_contents(pack, catalog_of(campaign), req.preset_random)

    #log code
    pack_logger.info(
        "open_pack_success",
        campaign_id=campaign_id,
        pack_id=pack_id,
        pack_name=pack.name,
        cards_drawn=len(card_ids)
    )

    return JSONResponse(status_code=201, content={
        "message": "Opened Pack Successfully",
        "pack": pack_doc,
        "picksPerPack": pack.picks_per_pack,
        "cardIds": card_ids,
        "cards": resolve_cards(card_ids, campaign["cards"]),
    })


@app.post("/campaigns/{campaign_id}/packs/{pack_id}/showcase")
async def showcase_pack(campaign_id: str, pack_id: str):
    """Show every card of a pack pool to all connected clients."""
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    pack_doc = find_pack(campaign["packs"], pack_id)
    if pack_doc is None:
        return JSONResponse(status_code=404, content={"error": "Pack not found"})

    card_ids = [entry["cardId"] for entry in pack_doc.get("cardPool", [])]
    set_card_showcase(campaign_id, card_ids)
    return {"cardIds": card_ids}


# ---------------------------------------------------------------------------
# players
# ---------------------------------------------------------------------------

@app.get("/campaigns/{campaign_id}/players")
async def list_players(campaign_id: str):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    return {"players": campaign["players"]}


@app.post("/campaigns/{campaign_id}/players")
async def create_player(campaign_id: str, player: Player):
    player_id = upsert_player(campaign_id, player)
    if player_id is None:
        return campaign_not_found(campaign_id)
    return JSONResponse(status_code=201, content={"id": player_id})


@app.put("/campaigns/{campaign_id}/players/{player_id}")
async def update_player(campaign_id: str, player_id: str, player: Player):
    if upsert_player(campaign_id, player, player_id) is None:
        return campaign_not_found(campaign_id)
    return {"id": player_id}


@app.post("/campaigns/{campaign_id}/players/{player_id}/balance")
async def change_balance(campaign_id: str, player_id: str, req: BalanceRequest):
    balance = change_player_balance(campaign_id, player_id, req.amount)
    if balance is None:
        return not_updated(campaign_id)
    return {"balance": balance}


@app.get("/campaigns/{campaign_id}/players/{player_id}/cards")
async def read_player_cards(campaign_id: str, player_id: str):
    """A player's inventory with each entry resolved against the catalog."""
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    player = campaign["players"].get(player_id)
    if player is None:
        return JSONResponse(status_code=404, content={"error": "Player not found"})

    cards = resolve_inventory(player, campaign["cards"])
    return {
        "name": player.get("name"),
        "balance": player.get("balance", 0),
        "cards": cards,
        "total_cards": len(cards),
    }


@app.post("/campaigns/{campaign_id}/players/{player_id}/cards")
async def modify_player_cards_endpoint(campaign_id: str, player_id: str, req: PlayerCardsRequest):
    key = modify_player_cards(campaign_id, player_id, req.action, req.card_key)
    if key is None:
        return not_updated(campaign_id)
    return {"updated": True, "key": key}


@app.post("/campaigns/{campaign_id}/players/{player_id}/cards/random")
async def give_random_card(campaign_id: str, player_id: str, req: Optional[RandomCardRequest] = None):
    """Hand a player one catalog card drawn by rarity weight."""
    req = req or RandomCardRequest()
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    if player_id not in campaign["players"]:
        return JSONResponse(status_code=404, content={"error": "Player not found"})

    card = pick_random_card(catalog_of(campaign), req.rarity, req.preset_random)
    key = modify_player_cards(campaign_id, player_id, "add", card.id)

    #log code
    pack_logger.info(
        "random_card_given",
        campaign_id=campaign_id,
        player_id=player_id,
        card_id=card.id,
        rarity=req.rarity
    )

    return {"key": key, "cardId": card.id}


@app.post("/campaigns/{campaign_id}/players/{player_id}/cards/{card_key}/usage")
async def add_card_usage_endpoint(campaign_id: str, player_id: str, card_key: str,
                                  req: Optional[CardUsageRequest] = None):
    req = req or CardUsageRequest()
    if not add_card_usage(campaign_id, player_id, card_key, req.amount):
        return not_updated(campaign_id)
    return {"updated": True}


# ---------------------------------------------------------------------------
# shop
# ---------------------------------------------------------------------------

@app.get("/campaigns/{campaign_id}/shop")
async def read_shop(campaign_id: str):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    return {"items": resolve_shop(campaign["shop"], campaign["cards"])}


@app.post("/campaigns/{campaign_id}/shop")
async def modify_shop_endpoint(campaign_id: str, req: ShopRequest):

    #log code
    shop_logger.info("modify_shop_attempt", campaign_id=campaign_id, action=req.type, key=req.key)

    key = modify_shop(campaign_id, req.type, req.payload, req.key)
    if key is None:
        return not_updated(campaign_id)
    return {"updated": True, "key": key}


# ---------------------------------------------------------------------------
# showcase
# ---------------------------------------------------------------------------

@app.get("/campaigns/{campaign_id}/showcase")
async def read_showcase(campaign_id: str):
    campaign = get_campaign(campaign_id)
    if campaign is None:
        return campaign_not_found(campaign_id)
    card_ids = campaign["cardShowcase"]
    return {"cardIds": card_ids, "cards": resolve_cards(card_ids, campaign["cards"])}


@app.put("/campaigns/{campaign_id}/showcase")
async def set_showcase(campaign_id: str, req: ShowcaseRequest):
    if not set_card_showcase(campaign_id, req.card_ids):
        return campaign_not_found(campaign_id)
    return {"cardIds": req.card_ids}


# ---------------------------------------------------------------------------
# live subscription
# ---------------------------------------------------------------------------

def snapshot_message(campaign_id: str, campaign: Optional[dict]) -> dict:
    return {"type": "campaign_snapshot", "campaign_id": campaign_id, "campaign": campaign}


async def forward_updates(websocket: WebSocket, campaign_id: str, updates: asyncio.Queue):
    while True:
        campaign = await updates.get()
        await websocket.send_json(snapshot_message(campaign_id, campaign))


@app.websocket("/ws/campaigns/{campaign_id}")
async def websocket_campaign(websocket: WebSocket, campaign_id: str):
    if get_campaign(campaign_id) is None:
        await websocket.close(code=4004, reason="Campaign not found")
        return

    loop = asyncio.get_running_loop()
    updates: asyncio.Queue = asyncio.Queue()
    # subscribe before the snapshot is read so no write can fall in between;
    # writers may publish from any thread, hand the document to this loop
    unsubscribe = hub.subscribe(
        campaign_id,
        lambda doc: loop.call_soon_threadsafe(updates.put_nowait, doc)
    )
    sender = None

    try:
        await websocket.accept()

        #log code
        server_logger.info("campaign_feed_connected", campaign_id=campaign_id)

        await websocket.send_json(snapshot_message(campaign_id, get_campaign(campaign_id)))
        sender = asyncio.create_task(forward_updates(websocket, campaign_id, updates))

        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "error": "Invalid JSON"})
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:

        #log code
        server_logger.info("campaign_feed_disconnected", campaign_id=campaign_id)

    finally:
        unsubscribe()
        if sender is not None:
            sender.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
                await sender


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=HOST, port=PORT)
