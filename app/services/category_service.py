import logging
from collections import defaultdict

from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from app.core.errors import ValidationFailed, field_error
from app.models import Category, CategoryCreate, CategoryPublic

logger = logging.getLogger(__name__)


def build_category_tree(categories: list[dict]) -> list[dict]:
    """
    Nest flat category rows by parent_id.

    Rows keep their input order among siblings and get a "children" list
    only when they have any. A row whose parent is missing from the input
    becomes a root. Rows on a parent cycle (a row naming itself as parent
    included) cannot be reached from a root; they are left out of the tree
    and logged. The input rows are not modified.
    """
    by_id = {row["id"]: row for row in categories}
    children_of: dict = defaultdict(list)
    roots = []
    for row in categories:
        parent_id = row.get("parent_id")
        if parent_id is None or parent_id not in by_id:
            roots.append(row)
        else:
            children_of[parent_id].append(row)

    placed = set()
    tree = []
    pending = []
    for row in roots:
        node = dict(row)
        placed.add(row["id"])
        tree.append(node)
        pending.append(node)

    while pending:
        node = pending.pop()
        children = []
        for row in children_of.get(node["id"], ()):
            if row["id"] in placed:
                continue
            child = dict(row)
            placed.add(row["id"])
            children.append(child)
            pending.append(child)
        if children:
            node["children"] = children

    unreachable = [row["id"] for row in categories if row["id"] not in placed]
    if unreachable:
        logger.warning(f"Categories left out of tree due to parent cycles: {unreachable}")
    return tree


class CategoryService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_categories(self) -> dict:
        result = await self.db.exec(select(Category).order_by(Category.created_at.desc()))
        rows = [
            CategoryPublic.model_validate(category).model_dump(mode="json")
            for category in result.all()
        ]
        return {"list": rows, "tree": build_category_tree(rows), "count": len(rows)}

    async def create_category(self, category_data: CategoryCreate) -> dict:
        errors = []
        if category_data.parent_id is not None:
            parent = await self.db.get(Category, category_data.parent_id)
            if not parent:
                errors.append(field_error("parent_id", "parent category does not exist"))

        existing = await self.db.exec(
            select(Category).where(Category.name == category_data.name)
        )
        if existing.first() is not None:
            errors.append(field_error("name", "category name already exists"))
        if errors:
            raise ValidationFailed(errors=errors)

        category = Category.model_validate(category_data)
        self.db.add(category)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ValidationFailed(errors=[field_error("name", "category name already exists")])
        await self.db.refresh(category)
        logger.info(f"Created category {category.id}")
        return CategoryPublic.model_validate(category).model_dump(mode="json")
