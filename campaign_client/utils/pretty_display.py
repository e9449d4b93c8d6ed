# pretty print display stuff
from campaign_server.card_utils.card import rarity_name


def print_info(message: str):
    print(f"[INFO]: {message}")


def print_border():
    print("=" * 40)
    print()


def print_header(title: str):
    print_border()
    print(title)
    print_border()


def format_card(card: dict) -> str:
    tag = f"[{rarity_name(card.get('rarity', 0)).upper()}]"
    card_type = f" ({card['type']})" if card.get('type') else ""
    return f"{tag} {card.get('name', '?')}{card_type}"


def print_cards(cards: list, numbered: bool = False):
    if not cards:
        print("  (no cards)")
        return
    for i, card in enumerate(cards, start=1):
        prefix = f"{i}. " if numbered else ""
        print(f"  {prefix}{format_card(card)}")


def print_startup_message():
    print_border()
    print("Campaign Deck Builder")
    print("Please select an option to continue:")
    print("1. Join an existing campaign")
    print("2. Create a new campaign")
    print_border()
