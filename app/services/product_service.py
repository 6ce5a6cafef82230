import logging

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.cache.decorators import cache_aside, invalidates
from app.cache.layer import CacheLayer
from app.core.config import Settings
from app.core.errors import ValidationFailed, field_error
from app.models import (
    Category,
    CategoryBrief,
    Product,
    ProductCreate,
    ProductListItem,
    ProductPublic,
)

logger = logging.getLogger(__name__)

PRODUCTS_LIST_KEY = "products:list"


def product_key(product_id) -> str:
    return f"product:{product_id}"


class ProductService:
    def __init__(self, db: AsyncSession, cache: CacheLayer, settings: Settings):
        self.db = db
        self.cache = cache
        self.settings = settings

    @invalidates(lambda *_, **__: PRODUCTS_LIST_KEY)
    async def create_product(self, product_data: ProductCreate) -> dict:
        category = await self.db.get(Category, product_data.category_id)
        if not category:
            raise ValidationFailed(
                "category does not exist",
                errors=[field_error("category_id", "category does not exist")],
            )

        product = Product.model_validate(product_data)
        self.db.add(product)
        await self.db.commit()
        await self.db.refresh(product)
        logger.info(f"Created product {product.id} in category {category.id}")

        payload = ProductPublic.model_validate(product).model_dump(mode="json")
        # Pre-warm the single-product entry
        await self.cache.set(
            product_key(product.id), payload, self.settings.cache_entity_ttl
        )
        return payload

    @cache_aside(lambda *_, **__: PRODUCTS_LIST_KEY, ttl=lambda s: s.settings.cache_list_ttl)
    async def list_products(self) -> list[dict]:
        query = (
            select(Product, Category)
            .join(Category, Product.category_id == Category.id, isouter=True)
            .order_by(Product.created_at.desc())
        )
        result = await self.db.exec(query)
        return [
            ProductListItem(
                id=product.id,
                name=product.name,
                price=product.price,
                description=product.description,
                stock=product.stock,
                created_at=product.created_at,
                category=CategoryBrief.model_validate(category) if category else None,
            ).model_dump(mode="json")
            for product, category in result.all()
        ]
