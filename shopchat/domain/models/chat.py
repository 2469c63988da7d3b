from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

# Model output is loose (nulls for unused keys, ids as numbers);
# each action variant keeps only the fields it owns.
_ACTION_CONFIG = ConfigDict(extra="ignore", coerce_numbers_to_str=True, frozen=True)

class NoAction(BaseModel):
    type: Literal["none"] = "none"
    model_config = _ACTION_CONFIG

class ShowProductAction(BaseModel):
    type: Literal["show_product"]
    productId: str = Field(..., min_length=1)
    model_config = _ACTION_CONFIG

class GoToUrlAction(BaseModel):
    type: Literal["go_to_url"]
    url: str = Field(..., min_length=1)
    productId: Optional[str] = None
    model_config = _ACTION_CONFIG

class AddToCartAction(BaseModel):
    """
    Cart action. Catalog fields (url, prices, title, image, slug) are only
    trustworthy after enrichment from the tenant catalog.
    """
    type: Literal["add_to_cart"]
    productId: str = Field(..., min_length=1)
    quantity: int = Field(1, ge=1)
    url: Optional[str] = None
    price_sale: Optional[float] = None
    price_regular: Optional[float] = None
    title: Optional[str] = None
    image: Optional[str] = None
    slug: Optional[str] = None
    model_config = _ACTION_CONFIG

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_quantity(cls, v):
        return 1 if v is None else v

# Filled from the tenant catalog by the response enricher, never trusted from the model
CART_CATALOG_FIELDS = ("url", "price_sale", "price_regular", "title", "image", "slug")

Action = Annotated[
    Union[NoAction, ShowProductAction, GoToUrlAction, AddToCartAction],
    Field(discriminator="type"),
]
ACTION_ADAPTER: TypeAdapter = TypeAdapter(Action)

class ChatReply(BaseModel):
    message: str
    audio_description: str = ""
    action: Action = Field(default_factory=NoAction)

    def to_payload(self) -> dict:
        """Wire shape: absent action fields are omitted rather than sent as null."""
        return {
            "message": self.message,
            "audio_description": self.audio_description,
            "action": self.action.model_dump(exclude_none=True),
        }
