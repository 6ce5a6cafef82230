from fastapi import APIRouter, Depends

from app.core import responses
from app.dependencies import get_product_service
from app.models import ProductCreate
from app.services.product_service import ProductService

router = APIRouter(tags=["products"])


@router.post("/product/create")
async def create_product(
    product_data: ProductCreate,
    service: ProductService = Depends(get_product_service),
):
    """Create a new product in an existing category"""
    product = await service.create_product(product_data)
    return responses.success(product, "product created")


@router.get("/products")
async def list_products(service: ProductService = Depends(get_product_service)):
    """List products with their category"""
    result = await service.list_products()
    return responses.success(
        {"list": result.data, "count": len(result.data), "source": result.source.value},
        "product list fetched",
    )
