"""Catalog filtering, sorting and paging."""
import unicodedata
from typing import Iterable, List, Optional


def normalize_text(text: str) -> str:
    # NFD splits accented letters into base + combining mark; drop the marks.
    decomposed = unicodedata.normalize('NFD', text or '')
    return ''.join(ch for ch in decomposed if not unicodedata.combining(ch)).lower()


def matches_search(card: dict, search: str) -> bool:
    needle = normalize_text(search)
    return needle in normalize_text(card.get('name', '')) or \
        needle in normalize_text(card.get('description', ''))


def filter_cards(cards: Iterable[dict],
                 rarity: Optional[int] = None,
                 category: Optional[str] = None,
                 card_type: Optional[str] = None,
                 tag: Optional[str] = None,
                 search: Optional[str] = None) -> List[dict]:
    results = []
    for card in cards:
        if rarity is not None and card.get('rarity') != rarity:
            continue
        if category and card.get('category') != category:
            continue
        if card_type and card.get('type') != card_type:
            continue
        if tag and tag not in (card.get('tags') or []):
            continue
        if search and not matches_search(card, search):
            continue
        results.append(card)
    return results


def sort_cards(cards: List[dict], sort: str = 'name') -> List[dict]:
    """Stable sort by `name` (accent/case-insensitive) or `rarity`."""
    if sort == 'name':
        return sorted(cards, key=lambda c: normalize_text(c.get('name', '')))
    if sort == 'rarity':
        return sorted(cards, key=lambda c: c.get('rarity', 0))
    return list(cards)


def paginate(items: List[dict], page: int = 0, per_page: Optional[int] = None) -> List[dict]:
    if not per_page:
        return items
    start = page * per_page
    return items[start:start + per_page]


def unique_values(cards: Iterable[dict], field: str) -> List[str]:
    return sorted({card.get(field) for card in cards if card.get(field)})
