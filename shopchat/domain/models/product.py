from pydantic import BaseModel, Field, field_validator
from typing import Optional, List

class ProductPrice(BaseModel):
    regular: Optional[float] = None
    sale: Optional[float] = None
    tag: Optional[str] = None

    model_config = {"frozen": True}

class CategoryRef(BaseModel):
    idcat: Optional[str] = None
    slug: Optional[str] = None

    model_config = {"frozen": True}

class Product(BaseModel):
    """Catalog record as stored by the store management system (read-only here)."""
    id: str = Field(alias="_id")
    domain: str
    title: str
    description_short: Optional[str] = None
    description_long: Optional[str] = None
    price: ProductPrice = Field(default_factory=ProductPrice)
    slug: Optional[str] = None
    image_default: List[str] = []
    category: List[CategoryRef] = []
    is_available: Optional[bool] = None
    stock: Optional[int] = None

    model_config = {"frozen": True, "populate_by_name": True}  # immuable = safe

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_object_id(cls, v):
        # Mongo hands back bson.ObjectId
        return str(v) if v is not None else v

    @field_validator("price", mode="before")
    @classmethod
    def _price_or_empty(cls, v):
        return v if v is not None else {}

    @property
    def display_price(self) -> Optional[float]:
        """Sale price when the product is on sale, otherwise the regular one."""
        return self.price.sale or self.price.regular

    @property
    def main_image(self) -> Optional[str]:
        return self.image_default[0] if self.image_default else None

    def url_for(self, domain: str) -> str:
        return f"https://{domain}/product/{self.slug or ''}"
