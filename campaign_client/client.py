import json
import os
import threading
import time
from pathlib import Path

import requests
import websocket

from campaign_client.utils.pretty_display import (
    print_info,
    print_border,
    print_header,
    print_cards,
    format_card,
    print_startup_message,
)
from campaign_client.utils.animations import animate_pack_opening
from campaign_server.card_utils.pack_utils import backup_filename, cards_from_path, write_backup

DEFAULT_SERVER_URL = os.getenv("CAMPAIGN_SERVER_URL", "http://localhost:8000")


class CampaignClient:
    """Thin wrapper over the campaign API for one campaign."""

    def __init__(self, base_url: str, campaign_id: str = None):
        self.base_url = base_url.rstrip('/')
        self.campaign_id = campaign_id
        self.session = requests.Session()
        self.is_subscribed = False
        self._ws_app = None
        self._ws_thread = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/campaigns/{self.campaign_id}{path}"

    # campaigns

    def list_campaigns(self):
        response = self.session.get(f"{self.base_url}/campaigns")
        return response.json()

    def create_campaign(self, name: str):
        response = self.session.post(f"{self.base_url}/campaigns", json={"name": name})
        data = response.json()
        if "id" in data:
            self.campaign_id = data["id"]
        return data

    def get_campaign(self):
        return self.session.get(self._url("")).json()

    def export_campaign(self):
        return self.session.get(self._url("/export")).json()

    # cards

    def get_cards(self, **filters):
        params = {k: v for k, v in filters.items() if v not in (None, "")}
        return self.session.get(self._url("/cards"), params=params).json()

    def upsert_card(self, card: dict):
        return self.session.put(self._url("/cards"), json=card).json()

    def remove_card(self, card_id: str):
        return self.session.delete(self._url(f"/cards/{card_id}")).json()

    def export_cards(self):
        return self.session.get(self._url("/cards/export")).json()

    def import_cards(self, backup):
        return self.session.post(self._url("/cards/import"), json=backup).json()

    def save_card_backup(self, directory="."):
        """Write the catalog to "<campaign name> <date>.json" in `directory`."""
        name = self.get_campaign().get("name", "campaign")
        return write_backup(Path(directory) / backup_filename(name), self.export_cards())

    def load_card_backup(self, path):
        # validate locally so a bad file never reaches the server
        cards = cards_from_path(path)
        return self.import_cards([card.to_document() for card in cards])

    # packs

    def get_packs(self):
        return self.session.get(self._url("/packs")).json()

    def upsert_pack(self, pack: dict):
        return self.session.put(self._url("/packs"), json=pack).json()

    def modify_pack_contents(self, pack_id: str, card_id: str, action: str):
        payload = {"cardId": card_id, "action": action}
        return self.session.post(self._url(f"/packs/{pack_id}/cards"), json=payload).json()

    def open_pack(self, pack_id: str, preset_random: float = None):
        payload = {} if preset_random is None else {"preset_random": preset_random}
        return self.session.post(self._url(f"/packs/{pack_id}/open"), json=payload).json()

    # players

    def get_players(self):
        return self.session.get(self._url("/players")).json()

    def create_player(self, name: str, balance: int = 0):
        payload = {"name": name, "balance": balance, "Cards": {}}
        return self.session.post(self._url("/players"), json=payload).json()

    def change_balance(self, player_id: str, amount: int):
        payload = {"amount": amount}
        return self.session.post(self._url(f"/players/{player_id}/balance"), json=payload).json()

    def get_player_cards(self, player_id: str):
        return self.session.get(self._url(f"/players/{player_id}/cards")).json()

    def give_card(self, player_id: str, card_id: str):
        payload = {"action": "add", "cardKey": card_id}
        return self.session.post(self._url(f"/players/{player_id}/cards"), json=payload).json()

    def take_card(self, player_id: str, inventory_key: str):
        payload = {"action": "remove", "cardKey": inventory_key}
        return self.session.post(self._url(f"/players/{player_id}/cards"), json=payload).json()

    def use_card(self, player_id: str, inventory_key: str, amount: int = 1):
        url = self._url(f"/players/{player_id}/cards/{inventory_key}/usage")
        return self.session.post(url, json={"amount": amount}).json()

    # shop & showcase

    def get_shop(self):
        return self.session.get(self._url("/shop")).json()

    def modify_shop(self, action: str, payload: dict = None, key: str = None):
        body = {"type": action}
        if payload is not None:
            body["payload"] = payload
        if key is not None:
            body["key"] = key
        return self.session.post(self._url("/shop"), json=body).json()

    def get_showcase(self):
        return self.session.get(self._url("/showcase")).json()

    def set_showcase(self, card_ids: list):
        return self.session.put(self._url("/showcase"), json={"cardIds": card_ids}).json()

    # live feed

    def _to_ws_url(self, http_url: str) -> str:
        if http_url.startswith('https://'):
            return 'wss://' + http_url[len('https://'):]
        if http_url.startswith('http://'):
            return 'ws://' + http_url[len('http://'):]
        return http_url

    def subscribe(self, on_snapshot=None, timeout: float = 5.0):
        """Follow the campaign live.

        - `on_snapshot` (optional): callable receiving the campaign dict on
          connect and after every change.
        - `timeout`: seconds to wait for the connection to open before returning.

        Runs the websocket in a background thread.
        """
        ws_url = self._to_ws_url(f"{self.base_url}/ws/campaigns/{self.campaign_id}")

        def _on_open(ws):
            self.is_subscribed = True

        def _on_message(ws, message):
            try:
                data = json.loads(message)
            except json.JSONDecodeError:
                print_info(f'Raw WS message: {message}')
                return
            if data.get('type') == 'campaign_snapshot' and on_snapshot:
                try:
                    on_snapshot(data.get('campaign'))
                except Exception as e:
                    print_info(f'Error in on_snapshot handler: {e}')

        def _on_close(ws, close_status_code, close_msg):
            self.is_subscribed = False
            print_info(f'Live feed closed: {close_status_code} {close_msg}')

        def _on_error(ws, error):
            print_info(f'Live feed error: {error}')

        self._ws_app = websocket.WebSocketApp(
            ws_url,
            on_open=_on_open,
            on_message=_on_message,
            on_close=_on_close,
            on_error=_on_error,
        )

        def _run():
            # run_forever blocks; run in background thread
            try:
                self._ws_app.run_forever()
            except Exception as e:
                print_info(f'Live feed run_forever exited: {e}')

        self._ws_thread = threading.Thread(target=_run, daemon=True)
        self._ws_thread.start()

        start = time.time()
        while not self.is_subscribed and (time.time() - start) < timeout:
            time.sleep(0.05)

        return {'connected': self.is_subscribed}

    def unsubscribe(self):
        if self._ws_app:
            self._ws_app.close()
        self.is_subscribed = False


def choose(items: list, label, prompt: str = "Choose"):
    """Numbered picker; returns the chosen item or None on 0 / bad input."""
    if not items:
        print("  Nothing to choose from.")
        return None
    for i, item in enumerate(items, start=1):
        print(f"  {i}. {label(item)}")
    raw = input(f"{prompt} (1-{len(items)}, 0 to cancel): ")
    try:
        idx = int(raw)
    except ValueError:
        print("Invalid input.")
        return None
    if 1 <= idx <= len(items):
        return items[idx - 1]
    return None


def read_int(prompt: str, default: int = 0) -> int:
    raw = input(prompt)
    try:
        return int(raw)
    except ValueError:
        return default


def open_pack_flow(client: CampaignClient):
    packs = client.get_packs().get('packs', [])
    pack = choose(packs, lambda p: f"{p['name']} (cost {p.get('price', 0)}, {p.get('cardsPerPack', 1)} cards)")
    if not pack:
        return

    response = client.open_pack(pack['id'])
    if "error" in response:
        print(f"Error: {response['error']}")
        return

    catalog = {c['id']: c for c in client.get_cards().get('cards', [])}
    pool = [catalog[e['cardId']] for e in pack.get('cardPool', []) if e['cardId'] in catalog]
    print_header(f"Opening {pack['name']}...")
    animate_pack_opening(response['cards'], pool=pool, terminal_width=50)

    remaining = list(response['cards'])
    picks = response.get('picksPerPack', 0)
    players = client.get_players().get('players', {})
    while picks > 0 and remaining:
        print(f"\n{picks} pick(s) left.")
        card = choose(remaining, format_card, "Card to hand out")
        if not card:
            break
        player_id = choose(list(players), lambda pid: players[pid]['name'], "Give to")
        if not player_id:
            continue
        client.give_card(player_id, card['id'])
        remaining.remove(card)
        picks -= 1

    if input("Showcase the drawn cards? (y/n): ").lower() == 'y':
        client.set_showcase([c['id'] for c in response['cards']])


def dm_menu(client: CampaignClient):
    while True:
        switch_case = {
            '1': 'Browse Cards',
            '2': 'Create Card',
            '3': 'Create Pack',
            '4': 'Add Card to Pack',
            '5': 'Open Pack',
            '6': 'Players',
            '7': 'Add Card to Shop',
            '8': 'Clear Showcase',
            '9': 'Save Card Backup',
            '10': 'Load Card Backup',
            '11': 'Exit'
        }
        print("\nDM Options:")
        for key, value in switch_case.items():
            print(f"{key}. {value}")
        choice = input(f"Enter choice (1-{len(switch_case)}): ")

        match choice:
            case '1':
                search = input("Search (blank for all): ")
                response = client.get_cards(search=search, sort='rarity')
                print_header(f"Catalog ({response.get('total', 0)} cards)")
                print_cards(response.get('cards', []))
            case '2':
                card = {
                    "name": input("Name: "),
                    "type": input("Type: "),
                    "rarity": read_int("Rarity (1 Legendary - 4 Common): ", 4),
                    "usage": read_int("Uses (-1 unlimited): ", -1),
                    "description": input("Description: "),
                }
                response = client.upsert_card(card)
                print(response.get('error') or f"Saved card {response.get('id')}")
            case '3':
                cards_per_pack = read_int("Cards per pack: ", 1)
                pack = {
                    "name": input("Pack name: "),
                    "price": read_int("Price: ", 0),
                    "cardsPerPack": cards_per_pack,
                    "picksPerPack": read_int("Picks per pack: ", cards_per_pack),
                    "cardPool": [],
                }
                response = client.upsert_pack(pack)
                print(response.get('error') or f"Saved pack {response.get('id')}")
            case '4':
                pack = choose(client.get_packs().get('packs', []), lambda p: p['name'], "Pack")
                card = choose(client.get_cards().get('cards', []), format_card, "Card") if pack else None
                if card:
                    response = client.modify_pack_contents(pack['id'], card['id'], 'add')
                    print(response.get('error') or "Card added to pack.")
            case '5':
                open_pack_flow(client)
            case '6':
                players_menu(client)
            case '7':
                card = choose(client.get_cards().get('cards', []), format_card, "Card")
                if card:
                    price = read_int("Price: ", 0)
                    response = client.modify_shop('add', {"cardId": card['id'], "price": price})
                    print(response.get('error') or "Added to shop.")
            case '8':
                client.set_showcase([])
                print("Showcase cleared.")
            case '9':
                path = client.save_card_backup(input("Save to folder (blank for here): ") or ".")
                print(f"Catalog saved to {path}")
            case '10':
                try:
                    response = client.load_card_backup(input("Backup file: "))
                except (OSError, ValueError) as e:
                    print(f"Could not read backup: {e}")
                    continue
                summary = response.get('summary', {})
                print(response.get('error') or
                      f"Added {summary.get('added_count', 0)}, updated {summary.get('updated_count', 0)}, "
                      f"skipped {summary.get('skipped_count', 0)} (name already taken).")
            case '11':
                return


def players_menu(client: CampaignClient):
    players = client.get_players().get('players', {})
    for player_id, player in players.items():
        print(f"  {player['name']}: balance {player.get('balance', 0)}, {len(player.get('Cards', {}))} cards")
    print_border()
    action = input("(n)ew player, (b)alance change, or enter to go back: ").lower()
    if action == 'n':
        response = client.create_player(input("Name: "), read_int("Starting balance: ", 0))
        print(response.get('error') or f"Created player {response.get('id')}")
    elif action == 'b':
        player_id = choose(list(players), lambda pid: players[pid]['name'], "Player")
        if player_id:
            response = client.change_balance(player_id, read_int("Amount (+/-): ", 0))
            print(f"New balance: {response.get('balance')}")


def player_menu(client: CampaignClient):
    players = client.get_players().get('players', {})
    player_id = choose(list(players), lambda pid: players[pid]['name'], "Who are you")
    if not player_id:
        return

    def _on_snapshot(campaign):
        if campaign and campaign.get('cardShowcase'):
            catalog = {c['id']: c for c in campaign.get('cards', [])}
            shown = [catalog[i] for i in campaign['cardShowcase'] if i in catalog]
            print_header("The DM is showing:")
            print_cards(shown)

    if client.subscribe(on_snapshot=_on_snapshot).get('connected'):
        print_info("Following the campaign live.")

    while True:
        print("\nPlayer Options:\n1. My Cards\n2. Use a Card\n3. Shop\n4. Catalog\n5. Exit")
        choice = input("Enter choice (1-5): ")
        match choice:
            case '1':
                response = client.get_player_cards(player_id)
                print_header(f"{response.get('name')} - balance {response.get('balance', 0)}")
                for entry in response.get('cards', []):
                    print(f"  {format_card(entry['card'])} - {entry['usageLabel']}")
            case '2':
                cards = client.get_player_cards(player_id).get('cards', [])
                entry = choose(cards, lambda e: f"{format_card(e['card'])} - {e['usageLabel']}", "Card")
                if entry:
                    client.use_card(player_id, entry['key'])
            case '3':
                items = client.get_shop().get('items', [])
                print_header("Shop")
                for item in items:
                    print(f"  {format_card(item['card'])} - price {item['price']}")
            case '4':
                print_cards(client.get_cards(search=input("Search: ")).get('cards', []))
            case '5':
                client.unsubscribe()
                return


def main():
    client = CampaignClient(base_url=DEFAULT_SERVER_URL)
    print_startup_message()
    choice = input("Enter choice (1 or 2): ")

    if choice == '2':
        response = client.create_campaign(input("Campaign name: "))
        if "error" in response:
            print(f"Error creating campaign: {response['error']}")
            return
    else:
        campaigns = client.list_campaigns().get('campaigns', [])
        campaign = choose(campaigns, lambda c: c['name'], "Campaign")
        if not campaign:
            return
        client.campaign_id = campaign['id']

    role = input("Are you the (d)m or a (p)layer? ").lower()
    if role == 'd':
        dm_menu(client)
    else:
        player_menu(client)
    print("Goodbye!")


if __name__ == "__main__":
    main()
