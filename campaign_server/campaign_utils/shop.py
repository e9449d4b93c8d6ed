from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class ShopItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    card_id: str = Field(alias='cardId')
    price: int = Field(ge=0)


class ShopItemPatch(BaseModel):
    """Partial shop item merged into an existing entry on update."""
    model_config = ConfigDict(populate_by_name=True)

    card_id: Optional[str] = Field(default=None, alias='cardId')
    price: Optional[int] = Field(default=None, ge=0)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
