"""
Request and response schemas for the PC components manufacturer API.

Documents are open-schema: bodies keep any extra fields the client sends, and
only the fields the server acts on are declared and coerced.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


class OpenModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class ProductIn(OpenModel):
    name: Optional[str] = None
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    stock: int
    moq: int = Field(..., description="Minimum order quantity")
    sold: int = 0


class StockPatch(BaseModel):
    value: int


class ReviewIn(OpenModel):
    pass


class UserIn(OpenModel):
    name: Optional[str] = None


class OrderIn(BaseModel):
    formData: Dict[str, Any]
    newStock: int
    newSold: int


class PaymentIntentIn(BaseModel):
    price: float = Field(..., gt=0)


class PaymentConfirmIn(OpenModel):
    status: Optional[str] = None
    paymentStatus: Optional[str] = None
    transactionID: Optional[str] = None

    @model_validator(mode="after")
    def has_update(self):
        if not self.model_dump(exclude_none=True):
            raise ValueError("at least one payment field is required")
        return self


class OrderStatusIn(BaseModel):
    newStatus: str


class OrderCancelIn(BaseModel):
    itemID: str
    adjustStock: int
    adjustSold: int


# ----------------------- Responses -----------------------
class InsertAck(BaseModel):
    insertedId: str


class UpdateAck(BaseModel):
    matchedCount: int
    modifiedCount: int
    upsertedId: Optional[str] = None


class DeleteAck(BaseModel):
    deletedCount: int


class UserUpsertOut(BaseModel):
    result: UpdateAck
    token: str


class AdminStatus(BaseModel):
    admin: bool


class OrderPlaced(BaseModel):
    addOrder: InsertAck
    updateProduct: UpdateAck


class OrderCancelled(BaseModel):
    deleteOrder: DeleteAck
    adjustItem: UpdateAck


class ClientSecret(BaseModel):
    clientSecret: str


Documents = List[Dict[str, Any]]
