import pytest
from starlette.websockets import WebSocket, WebSocketDisconnect

from campaign_server.campaign_utils.player import Player
from campaign_server.card_utils.card import PlayingCard
from campaign_server.utils import db_access
from campaign_server.utils.subscriptions import hub


@pytest.fixture
def pack_campaign(seeded_campaign, sample_pack):
    db_access.upsert_pack(seeded_campaign, sample_pack)
    return seeded_campaign


@pytest.fixture
def player_id(seeded_campaign):
    return db_access.upsert_player(seeded_campaign, Player(name="Ireena", balance=10))


def test_health(client):
    assert client.get("/").json()["status"] == "ok"


class TestCampaignRoutes:

    def test_create_and_list(self, client):
        res = client.post("/campaigns", json={"name": "Curse of Strahd"})
        assert res.status_code == 201
        campaign_id = res.json()["id"]

        listed = client.get("/campaigns").json()["campaigns"]
        assert listed == [{"id": campaign_id, "name": "Curse of Strahd"}]

    def test_blank_name_is_rejected(self, client):
        assert client.post("/campaigns", json={"name": ""}).status_code == 422

    def test_unknown_campaign_is_404(self, client):
        res = client.get("/campaigns/nope")
        assert res.status_code == 404
        assert res.json() == {"error": "Campaign not found"}

    def test_export_is_a_download(self, client, seeded_campaign):
        res = client.get(f"/campaigns/{seeded_campaign}/export")
        assert res.status_code == 200
        assert res.headers["content-disposition"].startswith("attachment; filename*=UTF-8''Curse%20of%20Strahd")
        assert len(res.json()["cards"]) == 4

    def test_vocabulary(self, client, seeded_campaign):
        body = client.get(f"/campaigns/{seeded_campaign}/vocabulary").json()
        assert "Radiant" in body["tags"]
        assert body["types"] == ["Consumable", "Item", "Weapon"]
        assert body["categories"] == ["Relic"]
        assert body["rarities"]["1"]["name"] == "Legendary"


class TestCardRoutes:

    def test_upsert_and_read(self, client, campaign_id):
        res = client.put(f"/campaigns/{campaign_id}/cards", json={"name": "Stake", "rarity": 4})
        card_id = res.json()["id"]
        assert client.get(f"/campaigns/{campaign_id}/cards/{card_id}").json()["name"] == "Stake"

    def test_duplicate_name_is_409(self, client, seeded_campaign):
        res = client.put(f"/campaigns/{seeded_campaign}/cards", json={"name": "Sunsword"})
        assert res.status_code == 409
        assert res.json() == {"error": "Card with this name already exists."}

    def test_invalid_usage_is_422(self, client, campaign_id):
        res = client.put(f"/campaigns/{campaign_id}/cards", json={"name": "Broken", "usage": 0})
        assert res.status_code == 422

    @pytest.mark.parametrize("rarity", [0, -5])
    def test_rarity_below_one_is_422(self, client, campaign_id, rarity):
        res = client.put(f"/campaigns/{campaign_id}/cards", json={"name": "Cursed", "rarity": rarity})
        assert res.status_code == 422
        assert db_access.get_cards(campaign_id) == []

    def test_unknown_card_is_404(self, client, campaign_id):
        res = client.get(f"/campaigns/{campaign_id}/cards/nope")
        assert res.status_code == 404

    def test_filtered_listing(self, client, seeded_campaign):
        body = client.get(f"/campaigns/{seeded_campaign}/cards",
                          params={"type": "Item", "sort": "rarity"}).json()
        assert [c["id"] for c in body["cards"]] == ["tome", "ring"]
        assert body["total"] == 2

    def test_paged_listing(self, client, seeded_campaign):
        body = client.get(f"/campaigns/{seeded_campaign}/cards",
                          params={"page": 1, "per_page": 3}).json()
        assert body["total"] == 4
        assert [c["name"] for c in body["cards"]] == ["Tome of Strahd"]

    def test_remove(self, client, seeded_campaign):
        assert client.delete(f"/campaigns/{seeded_campaign}/cards/sun").json() == {"removed": "sun"}
        assert db_access.get_card_info(seeded_campaign, "sun") is None

    def test_export_then_import_into_another_campaign(self, client, seeded_campaign):
        exported = client.get(f"/campaigns/{seeded_campaign}/cards/export").json()
        target = db_access.create_campaign("Tomb of Annihilation")
        db_access.upsert_card(target, PlayingCard(id="other", name="Sunsword"))

        body = client.post(f"/campaigns/{target}/cards/import", json=exported).json()
        assert body["skipped"] == ["Sunsword"]
        assert body["summary"] == {"added_count": 3, "updated_count": 0, "skipped_count": 1}

    def test_import_rejects_non_backup(self, client, campaign_id):
        res = client.post(f"/campaigns/{campaign_id}/cards/import", json="nope")
        assert res.status_code == 400


class TestPackRoutes:

    def test_upsert_clamps_picks(self, client, seeded_campaign):
        res = client.put(f"/campaigns/{seeded_campaign}/packs", json={
            "name": "Mini", "cardsPerPack": 2, "picksPerPack": 9, "cardPool": [{"cardId": "sun"}],
        })
        pack_id = res.json()["id"]
        stored = db_access.get_pack_info(seeded_campaign, pack_id)
        assert stored["picksPerPack"] == 2

    def test_zero_cards_per_pack_is_422(self, client, seeded_campaign):
        res = client.put(f"/campaigns/{seeded_campaign}/packs", json={"name": "Nil", "cardsPerPack": 0})
        assert res.status_code == 422

    def test_open_with_preset(self, client, pack_campaign):
        # sun weighs 1 (rarity), potion weighs 6: 0.5 * 7 = 3.5 lands on potion
        res = client.post(f"/campaigns/{pack_campaign}/packs/barovia/open", json={"preset_random": 0.5})
        assert res.status_code == 201
        body = res.json()
        assert body["cardIds"] == ["potion", "potion", "potion"]
        assert [c["name"] for c in body["cards"]] == ["Potion of Healing"] * 3
        assert body["picksPerPack"] == 1

        res = client.post(f"/campaigns/{pack_campaign}/packs/barovia/open", json={"preset_random": 0})
        assert res.json()["cardIds"] == ["sun"] * 3

    def test_open_without_body_draws_randomly(self, client, pack_campaign):
        res = client.post(f"/campaigns/{pack_campaign}/packs/barovia/open")
        assert res.status_code == 201
        assert set(res.json()["cardIds"]) <= {"sun", "potion"}

    def test_open_does_not_write(self, client, pack_campaign):
        before = db_access.get_campaign(pack_campaign)
        client.post(f"/campaigns/{pack_campaign}/packs/barovia/open")
        assert db_access.get_campaign(pack_campaign) == before

    def test_open_unknown_pack_is_404(self, client, seeded_campaign):
        res = client.post(f"/campaigns/{seeded_campaign}/packs/nope/open")
        assert res.status_code == 404
        assert res.json() == {"error": "Pack not found"}

    def test_open_empty_pool_is_400(self, client, seeded_campaign):
        client.put(f"/campaigns/{seeded_campaign}/packs", json={"id": "empty", "name": "Empty"})
        res = client.post(f"/campaigns/{seeded_campaign}/packs/empty/open")
        assert res.status_code == 400

    def test_pack_contents(self, client, pack_campaign):
        url = f"/campaigns/{pack_campaign}/packs/barovia/cards"
        assert client.post(url, json={"cardId": "ring", "action": "add"}).json() == {"updated": True}
        assert client.post(url, json={"cardId": "ring", "action": "add"}).status_code == 409

    def test_pack_contents_on_missing_pack_is_not_updated(self, client, seeded_campaign):
        res = client.post(f"/campaigns/{seeded_campaign}/packs/nope/cards",
                          json={"cardId": "ring", "action": "add"})
        assert res.status_code == 200
        assert res.json() == {"updated": False}

    def test_showcase_pack(self, client, pack_campaign):
        res = client.post(f"/campaigns/{pack_campaign}/packs/barovia/showcase")
        assert res.json() == {"cardIds": ["sun", "potion"]}
        assert db_access.get_card_showcase(pack_campaign) == ["sun", "potion"]


class TestPlayerRoutes:

    def test_create_and_list(self, client, campaign_id):
        res = client.post(f"/campaigns/{campaign_id}/players", json={"name": "Ismark"})
        assert res.status_code == 201
        player_id = res.json()["id"]
        players = client.get(f"/campaigns/{campaign_id}/players").json()["players"]
        assert players[player_id]["name"] == "Ismark"

    def test_update_unknown_player_is_404(self, client, campaign_id):
        res = client.put(f"/campaigns/{campaign_id}/players/nope", json={"name": "Ghost"})
        assert res.status_code == 404

    def test_balance(self, client, seeded_campaign, player_id):
        url = f"/campaigns/{seeded_campaign}/players/{player_id}/balance"
        assert client.post(url, json={"amount": -4}).json() == {"balance": 6}

    def test_balance_of_unknown_player_is_not_updated(self, client, seeded_campaign):
        res = client.post(f"/campaigns/{seeded_campaign}/players/nope/balance", json={"amount": 1})
        assert res.json() == {"updated": False}

    def test_inventory_flow(self, client, seeded_campaign, player_id):
        base = f"/campaigns/{seeded_campaign}/players/{player_id}/cards"
        key = client.post(base, json={"action": "add", "cardKey": "ring"}).json()["key"]

        client.post(f"{base}/{key}/usage", json={"amount": 2})
        body = client.get(base).json()
        assert body["name"] == "Ireena"
        assert body["total_cards"] == 1
        assert body["cards"][0]["timesUsed"] == 2
        assert body["cards"][0]["usageLabel"] == "Times Used: 2 / 3"

        assert client.post(base, json={"action": "remove", "cardKey": key}).json()["updated"] is True
        assert client.get(base).json()["cards"] == []

    def test_dangling_inventory_entries_are_hidden(self, client, seeded_campaign, player_id):
        base = f"/campaigns/{seeded_campaign}/players/{player_id}/cards"
        client.post(base, json={"action": "add", "cardKey": "tome"})
        db_access.remove_card(seeded_campaign, "tome")
        assert client.get(base).json()["total_cards"] == 0

    def test_random_card(self, client, seeded_campaign, player_id):
        res = client.post(f"/campaigns/{seeded_campaign}/players/{player_id}/cards/random",
                          json={"rarity": 4})
        body = res.json()
        assert body["cardId"] == "potion"
        assert db_access.get_player_cards(seeded_campaign, player_id)[body["key"]]["cardId"] == "potion"

    def test_usage_on_unknown_key_is_not_updated(self, client, seeded_campaign, player_id):
        res = client.post(f"/campaigns/{seeded_campaign}/players/{player_id}/cards/nope/usage")
        assert res.json() == {"updated": False}


class TestShopAndShowcaseRoutes:

    def test_shop_flow(self, client, seeded_campaign):
        url = f"/campaigns/{seeded_campaign}/shop"
        key = client.post(url, json={"type": "add", "payload": {"cardId": "potion", "price": 5}}).json()["key"]
        client.post(url, json={"type": "update", "key": key, "payload": {"price": 7}})

        items = client.get(url).json()["items"]
        assert items == [{"key": key, "price": 7, "card": db_access.get_card_info(seeded_campaign, "potion")}]

        client.post(url, json={"type": "remove", "key": key})
        assert client.get(url).json()["items"] == []

    def test_shop_add_without_price_is_422(self, client, seeded_campaign):
        res = client.post(f"/campaigns/{seeded_campaign}/shop",
                          json={"type": "add", "payload": {"cardId": "potion"}})
        assert res.status_code == 422

    def test_showcase(self, client, seeded_campaign):
        url = f"/campaigns/{seeded_campaign}/showcase"
        client.put(url, json={"cardIds": ["ring", "ghost", "ring"]})
        body = client.get(url).json()
        assert body["cardIds"] == ["ring", "ghost", "ring"]
        assert [c["id"] for c in body["cards"]] == ["ring", "ring"]

        client.put(url, json={})
        assert client.get(url).json()["cardIds"] == []


class TestCampaignFeed:

    def test_unknown_campaign_is_refused(self, client):
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/ws/campaigns/nope"):
                pass
        assert exc.value.code == 4004

    def test_snapshot_ping_and_live_update(self, client, campaign_id):
        with client.websocket_connect(f"/ws/campaigns/{campaign_id}") as ws:
            first = ws.receive_json()
            assert first["type"] == "campaign_snapshot"
            assert first["campaign"]["name"] == "Curse of Strahd"

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            ws.send_text("{not json")
            assert ws.receive_json()["type"] == "error"

            db_access.upsert_card(campaign_id, PlayingCard(id="c1", name="Stake"))
            update = ws.receive_json()
            assert update["campaign"]["cards"][0]["id"] == "c1"

    def test_write_during_handshake_is_not_lost(self, client, campaign_id, monkeypatch):
        accept = WebSocket.accept

        async def accept_after_write(self, *args, **kwargs):
            db_access.upsert_card(campaign_id, PlayingCard(id="late", name="Late Arrival"))
            await accept(self, *args, **kwargs)

        monkeypatch.setattr(WebSocket, "accept", accept_after_write)

        with client.websocket_connect(f"/ws/campaigns/{campaign_id}") as ws:
            first = ws.receive_json()
            assert [c["id"] for c in first["campaign"]["cards"]] == ["late"]

    def test_disconnect_releases_subscription(self, client, campaign_id):
        with client.websocket_connect(f"/ws/campaigns/{campaign_id}") as ws:
            ws.receive_json()
            assert hub.subscriber_count(campaign_id) == 1
        assert hub.subscriber_count(campaign_id) == 0

        # writes after the feed closed reach nobody and raise nothing
        db_access.upsert_card(campaign_id, PlayingCard(id="c1", name="Stake"))
