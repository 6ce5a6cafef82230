from fastapi import APIRouter, Depends

from app.core import responses
from app.dependencies import get_category_service
from app.models import CategoryCreate
from app.services.category_service import CategoryService

router = APIRouter(tags=["categories"])


@router.get("/categories")
async def list_categories(service: CategoryService = Depends(get_category_service)):
    """List categories, flat and as a parent/child tree"""
    return responses.success(await service.list_categories(), "category list fetched")


@router.post("/category/create")
async def create_category(
    category_data: CategoryCreate,
    service: CategoryService = Depends(get_category_service),
):
    category = await service.create_category(category_data)
    return responses.success(category, "category created")
