# pack of cards data class.
# each pack holds a weighted pool of catalog card ids; opening it draws
# `cardsPerPack` ids from the pool, with replacement.
import random
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Optional, Sequence, Tuple

from campaign_server.card_utils.card import PlayingCard
from campaign_server.errors import EmptyPoolError


class PackCardEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_id: str = Field(alias='cardId')
    # None means "use the card's rarity as its weight"
    weight: Optional[float] = Field(default=None, gt=0)


class Pack(BaseModel):
    """A purchasable bundle of cards.

    `cards_per_pack` is how many cards one opening draws, `picks_per_pack`
    how many of those draws the DM may hand out. Picks never exceed draws.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str
    price: int = Field(default=0, ge=0)
    cards_per_pack: int = Field(default=1, ge=1, alias='cardsPerPack')
    picks_per_pack: int = Field(default=1, ge=0, alias='picksPerPack')
    background: str = ""
    card_pool: List[PackCardEntry] = Field(default_factory=list, alias='cardPool')

    @model_validator(mode='after')
    def clamp_picks(self) -> 'Pack':
        if self.picks_per_pack > self.cards_per_pack:
            self.picks_per_pack = self.cards_per_pack
        return self

    def card_ids(self) -> List[str]:
        return [entry.card_id for entry in self.card_pool]

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def build_card_pool(pack: Pack, cards: Sequence[PlayingCard]) -> List[Tuple[str, float]]:
    """Return the eligible (card_id, weight) pairs of a pack.

    Entries pointing at cards missing from the catalog are dropped. An entry
    without an explicit weight is weighted by its card's rarity.
    """
    rarity_by_id = {card.id: card.rarity for card in cards}
    pool = []
    for entry in pack.card_pool:
        if entry.card_id not in rarity_by_id:
            continue
        weight = entry.weight if entry.weight is not None else rarity_by_id[entry.card_id]
        pool.append((entry.card_id, weight))
    return pool


def _pick_from_pool(pool: List[Tuple[str, float]], total_weight: float,
                    preset_random: Optional[float] = None) -> str:
    # Walk the cumulative weights until the scaled sample falls inside one.
    fraction = preset_random % 1 if preset_random is not None else random.random()
    sample = fraction * total_weight
    cumulative = 0.0
    for card_id, weight in pool:
        cumulative += weight
        if sample < cumulative:
            return card_id
    # Fallback in case of rounding errors
    return pool[-1][0]


def generate_pack_contents(pack: Pack, cards: Sequence[PlayingCard],
                           preset_random: Optional[float] = None) -> List[str]:
    """Open a pack and return the drawn card ids.

    :param pack: the pack being opened
    :param cards: the full campaign catalog
    :param preset_random: fixed fraction in [0, 1) used instead of a random
        sample for every draw
    :return: exactly `pack.cards_per_pack` card ids, duplicates allowed
    """
    if pack.cards_per_pack < 1:
        raise ValueError('cardsPerPack must be at least 1.')

    pool = build_card_pool(pack, cards)
    if not pool:
        raise EmptyPoolError(f"Pack '{pack.name}' has no cards from the catalog in its pool.")

    total_weight = sum(weight for _, weight in pool)
    if total_weight <= 0:
        raise EmptyPoolError(f"Pack '{pack.name}' must contain at least one positive weight.")

    return [_pick_from_pool(pool, total_weight, preset_random) for _ in range(pack.cards_per_pack)]


def pick_random_card(cards: Sequence[PlayingCard], rarity: Optional[int] = None,
                     preset_random: Optional[float] = None) -> PlayingCard:
    """Draw one catalog card weighted by rarity, optionally of a single rarity."""
    candidates = [card for card in cards if rarity is None or card.rarity == rarity]
    pool = [(card.id, card.rarity) for card in candidates]
    total_weight = sum(weight for _, weight in pool)
    if not pool or total_weight <= 0:
        raise EmptyPoolError('No catalog card matches the requested rarity.')

    card_id = _pick_from_pool(pool, total_weight, preset_random)
    return next(card for card in candidates if card.id == card_id)
