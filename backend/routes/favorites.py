# backend/routes/favorites.py
from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from database import get_db
from errors import NotFound
from models.favorite import Favorite
from models.product import Product
from models.users import User
from schemas.product import ProductList, ProductOut
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/favorites", tags=["Favorites"])


# Favorite products of the current user, newest first; soft-deleted products are hidden
@router.get("", response_model=ProductList)
def list_favorites(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    favorites = (
        db.query(Favorite)
        .options(joinedload(Favorite.product))
        .filter(Favorite.user_id == current_user.id)
        .order_by(Favorite.created_at.desc())
        .all()
    )
    items = [f.product for f in favorites if f.product is not None and f.product.deleted_at is None]
    return ProductList(items=[ProductOut.model_validate(p) for p in items])


@router.post("/{product_id}")
def add_favorite(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    product = db.query(Product).filter(Product.id == product_id, Product.deleted_at.is_(None)).first()
    if not product:
        raise NotFound("Product not found")

    exists = db.query(Favorite).filter(
        Favorite.user_id == current_user.id, Favorite.product_id == product_id
    ).first()
    if not exists:
        db.add(Favorite(user_id=current_user.id, product_id=product_id))
        try:
            db.commit()
        except IntegrityError:
            # Added concurrently; the pair is unique, so the favorite exists
            db.rollback()
    return {"ok": True}


# Removing something that is not a favorite is not an error
@router.delete("/{product_id}")
def remove_favorite(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    db.query(Favorite).filter(
        Favorite.user_id == current_user.id, Favorite.product_id == product_id
    ).delete(synchronize_session=False)
    db.commit()
    return {"ok": True}
