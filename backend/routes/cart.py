# backend/routes/cart.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from config import Settings, get_settings_dep
from database import get_db
from schemas.cart import CartErrorOut, CartLineOut, CartValidateRequest, CartValidateResponse
from services.cart import validate_cart

router = APIRouter(prefix="/cart", tags=["Cart"])


# Re-price the client-side cart against live stock; never fails on bad lines, reports them instead
@router.post("/validate", response_model=CartValidateResponse, response_model_exclude_none=True)
def validate(
    payload: CartValidateRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings_dep),
):
    summary = validate_cart(db, payload.items, settings)
    return CartValidateResponse(
        items=[CartLineOut.model_validate(line) for line in summary.lines],
        subtotal_cents=summary.subtotal,
        shipping_cents=summary.shipping,
        grand_total_cents=summary.grand_total,
        errors=[CartErrorOut.model_validate(err) for err in summary.errors],
    )
