# playing card data class.
# A card lives in the campaign catalog; packs, inventories, the shop and the
# showcase only ever hold its id. `rarity` is an integer where lower is
# rarer, and doubles as the default draw weight inside a pack.
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict, List, Optional


RARITIES: Dict[int, Dict[str, str]] = {
    1: {'name': 'Legendary', 'color': 'rgba(226, 40, 40, 0.75)'},
    2: {'name': 'Rare', 'color': 'rgba(104, 93, 252, 0.75)'},
    3: {'name': 'Uncommon', 'color': 'rgba(166, 219, 154, 0.75)'},
    4: {'name': 'Common', 'color': 'rgba(225, 228, 203, 0.75)'},
}

UNLIMITED_USAGE = -1

BASE_TAGS = [
    "Malus", "Dice", "Attack",
    "Defense", "Strength", "Dexterity", "Constitution", "Intelligence", "Wisdom", "Charisma", "Hit Points",
    "Armor Class", "Speed", "Initiative", "Saving Throws", "Skills", "Damage", "Healing",
    "Temporary Hit Points", "Conditions", "Movement", "Range", "Duration", "Targets", "Area of Effect",
    "Components", "Casting Time", "Concentration", "Ritual", "School", "Level", "Classes", "Subclasses"
]


class PlayingCard(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str
    rarity: int = Field(default=1, ge=1)
    type: str = ""
    category: str = ""
    activation_cost: str = ""
    description: str = ""
    usage: int = UNLIMITED_USAGE
    background: str = ""
    tags: Optional[List[str]] = None

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Card name cannot be empty.')
        return value

    @field_validator('usage')
    @classmethod
    def usage_is_valid(cls, value: int) -> int:
        # -1 means unlimited, 0 would be a card that can never be used
        if value == 0 or value < UNLIMITED_USAGE:
            raise ValueError('Card usage must be -1 (unlimited) or a positive number.')
        return value

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


def rarity_name(rarity: int) -> str:
    info = RARITIES.get(rarity)
    return info['name'] if info else f"Rarity {rarity}"


def usage_label(times_used: int, usage: Optional[int]) -> str:
    """Human readable "used / allowed" counter for an inventory card."""
    if usage is None:
        return f"Times Used: {times_used}"
    if usage == UNLIMITED_USAGE:
        return f"Times Used: {times_used} / ∞"
    return f"Times Used: {times_used} / {usage}"


def tag_vocabulary(cards: List[dict]) -> List[str]:
    campaign_tags = [tag for card in cards for tag in (card.get('tags') or [])]
    return sorted(set(BASE_TAGS) | set(campaign_tags))
