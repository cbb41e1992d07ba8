import os
import sys

from sqlalchemy.orm import Session

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

from config import get_settings
from database import build_engine, build_session_factory, init_db
from models.product import Product
from services.catalog import ensure_unique_slug

# Starter catalog: (name, slug, price in bani, image)
SEED_PRODUCTS = [
    ("Balon latex rosu", "balon-latex-rosu", 300, "/images/products/Balon-latex-rosu.jpg"),
    ("Balon cifra 5", "balon-cifra-5", 1500, "/images/products/Balon-latex-5.jpg"),
    ("Ghirlanda aniversara", "ghirlanda-aniversara", 2500, "/images/products/Ghirlanda-aniversara.jpg"),
    ("Set pahare petrecere", "set-pahare-petrecere", 1200, "/images/products/set-pahare-petrecere.jpg"),
    ("Balon folie", "balon-folie", 1500, "/images/products/baloane-folie.png"),
    ("Confetti colorat", "confetti-colorat", 1500, "/images/products/confetti-pop.jpg"),
    ("Banner Happy New Year", "banner-happy-new-year", 1500, "/images/products/happynewyear.jpg"),
]
SEED_STOCK = 100


def seed_products(session: Session) -> int:
    """Insert the starter catalog; products whose slug already exists are skipped."""
    existing = {slug for (slug,) in session.query(Product.slug).all()}
    added = 0
    for name, slug, price_cents, image in SEED_PRODUCTS:
        if slug in existing:
            continue
        session.add(Product(name=name, slug=slug, price_cents=price_cents, stock=SEED_STOCK, image=image))
        added += 1
    session.commit()
    return added


def backfill_slugs(session: Session) -> int:
    """Give every product with an empty slug a unique one derived from its name."""
    fixed = 0
    for product in session.query(Product).filter((Product.slug.is_(None)) | (Product.slug == "")).all():
        product.slug = ensure_unique_slug(session, product.name, exclude_id=product.id)
        # Flush each one so the next uniqueness check sees it
        session.flush()
        fixed += 1
    session.commit()
    return fixed


def feature_first_product(session: Session):
    """Mark the oldest product as featured so the home page is never empty."""
    first = session.query(Product).order_by(Product.created_at.asc(), Product.name.asc()).first()
    if first is None:
        return None
    first.featured = True
    session.commit()
    return first


def main():
    engine = build_engine(get_settings().DATABASE_URL)
    init_db(engine)
    session = build_session_factory(engine)()
    try:
        added = seed_products(session)
        fixed = backfill_slugs(session)
        featured = feature_first_product(session)
        print(f"Seed done: {added} products added, {fixed} slugs backfilled.")
        if featured is not None:
            print(f"Featured: {featured.id} {featured.name}")
    finally:
        session.close()


if __name__ == "__main__":
    main()
