# player data class.
# `cards` (persisted as "Cards") maps an inventory key to the owned card.
# The key is not the card id: a player can own the same card several times.
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Dict


class InventoryCard(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_id: str = Field(alias='cardId')
    times_used: int = Field(default=0, alias='timesUsed')


class Player(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    balance: int = 0
    cards: Dict[str, InventoryCard] = Field(default_factory=dict, alias='Cards')

    @field_validator('name')
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError('Player name cannot be empty.')
        return value

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
