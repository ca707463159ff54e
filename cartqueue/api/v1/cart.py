from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Path, Request
from pydantic import BaseModel, Field

from cartqueue.bootstrap import CartServices
from cartqueue.domain.cart.commands import MAX_ID
from cartqueue.domain.cart.snapshot import CartLineItem


router = APIRouter(prefix="/api/v1/cart", tags=["cart"])


# === Request/Response Models ===

class AddItemRequest(BaseModel):
    product_id: int = Field(ge=0, le=MAX_ID)
    # sign is checked by the use case so it answers INVALID_QUANTITY
    quantity: int


class UpdateItemRequest(BaseModel):
    quantity: int


class EnqueuedResponse(BaseModel):
    message: str


class CartItemResponse(BaseModel):
    id: int
    user_id: int
    product_id: int
    quantity: int
    product_name: str
    product_price: float
    total_price: float
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_line_item(cls, item: CartLineItem) -> "CartItemResponse":
        return cls(**item.model_dump(), total_price=item.total_price)


class CartResponse(BaseModel):
    user_id: int
    items: list[CartItemResponse]
    item_count: int
    total_amount: float


# === Dependency Injection ===

def get_services(request: Request) -> CartServices:
    """Get cart use cases from app state"""
    return request.app.state.services


def get_current_user_id(
    x_user_id: int | None = Header(default=None, alias="X-User-ID", ge=0, le=MAX_ID),
) -> int:
    """User id as set by the upstream authentication layer"""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="User not authenticated")
    return x_user_id


# === Command Endpoints (Write) ===

@router.post("", response_model=EnqueuedResponse, status_code=202)
def add_to_cart(
    payload: AddItemRequest,
    user_id: int = Depends(get_current_user_id),
    services: CartServices = Depends(get_services),
):
    """
    Enqueue a product for addition to the user's cart.

    Answers as soon as the broker has the message; the cart worker applies it.
    """
    services.add_item.execute(user_id, payload.product_id, payload.quantity)
    return EnqueuedResponse(message="Item enqueued for addition to cart")


@router.put("/{cart_item_id}", response_model=CartItemResponse)
def update_cart_item(
    payload: UpdateItemRequest,
    cart_item_id: int = Path(ge=0, le=MAX_ID),
    user_id: int = Depends(get_current_user_id),
    services: CartServices = Depends(get_services),
):
    item = services.update_item.execute(cart_item_id, payload.quantity, user_id=user_id)
    return CartItemResponse.from_line_item(item)


@router.delete("/{cart_item_id}")
def delete_cart_item(
    cart_item_id: int = Path(ge=0, le=MAX_ID),
    user_id: int = Depends(get_current_user_id),
    services: CartServices = Depends(get_services),
):
    services.remove_item.execute(cart_item_id, user_id=user_id)
    return {"message": "Item removed from cart"}


# === Query Endpoints (Read) ===

@router.get("", response_model=CartResponse)
def get_cart(
    user_id: int = Depends(get_current_user_id),
    services: CartServices = Depends(get_services),
):
    """Current cart contents, served from cache when possible"""
    items = services.get_cart.execute(user_id)
    return CartResponse(
        user_id=user_id,
        items=[CartItemResponse.from_line_item(item) for item in items],
        item_count=len(items),
        total_amount=sum(item.total_price for item in items),
    )


@router.get("/{cart_item_id}", response_model=CartItemResponse)
def get_cart_item(
    cart_item_id: int = Path(ge=0, le=MAX_ID),
    user_id: int = Depends(get_current_user_id),
    services: CartServices = Depends(get_services),
):
    item = services.get_cart_item.execute(cart_item_id, user_id=user_id)
    return CartItemResponse.from_line_item(item)
