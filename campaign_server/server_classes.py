from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Literal, Optional

from campaign_server.campaign_utils.shop import ShopItemPatch


class CreateCampaign(BaseModel):
    name: str = Field(min_length=1)


class PackContentsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_id: str = Field(alias='cardId', min_length=1)
    action: Literal['add', 'remove']


class OpenPackRequest(BaseModel):
    # fixed sample in [0, 1) instead of a random draw, for reproducible openings
    preset_random: Optional[float] = Field(default=None, ge=0)


class BalanceRequest(BaseModel):
    amount: int


class PlayerCardsRequest(BaseModel):
    """`card_key` is a catalog card id for add and an inventory key for remove."""
    model_config = ConfigDict(populate_by_name=True)

    action: Literal['add', 'remove']
    card_key: str = Field(alias='cardKey', min_length=1)


class RandomCardRequest(BaseModel):
    rarity: Optional[int] = None
    preset_random: Optional[float] = Field(default=None, ge=0)


class CardUsageRequest(BaseModel):
    amount: int = 1


class ShopRequest(BaseModel):
    type: Literal['add', 'update', 'remove']
    payload: Optional[ShopItemPatch] = None
    key: Optional[str] = None

    @model_validator(mode='after')
    def check_action_fields(self) -> 'ShopRequest':
        if self.type == 'add':
            if self.payload is None or self.payload.card_id is None or self.payload.price is None:
                raise ValueError('Adding a shop item needs a cardId and a price.')
        elif self.type == 'remove' and not self.key:
            raise ValueError('Removing a shop item needs its key.')
        elif self.type == 'update' and (self.payload is None or not self.key):
            raise ValueError('Updating a shop item needs its key and a payload.')
        return self


class ShowcaseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_ids: List[str] = Field(default_factory=list, alias='cardIds')
