# taskboard/core/pagination.py
"""
Offset pagination shared by list endpoints
"""
from typing import TypeVar, Generic, List, Optional, Dict, Type
from math import ceil

from fastapi import Query as QueryParam, Request
from pydantic import BaseModel, Field, computed_field
from sqlalchemy import select, func, Select
from sqlalchemy.ext.asyncio import AsyncSession

from taskboard.api.v1.schemas.common import CamelModel

T = TypeVar('T')


class PaginationParams(BaseModel):
    """Pagination parameters used across list endpoints"""
    page: int = Field(1, ge=1, description="Page number (1-indexed)")
    size: int = Field(20, ge=1, le=100, description="Items per page")

    @computed_field
    @property
    def offset(self) -> int:
        """Calculate offset for database query"""
        return (self.page - 1) * self.size


class PaginatedResponse(CamelModel, Generic[T]):
    """
    Generic paginated response that list endpoints return
    """
    items: List[T]
    total: int
    page: int
    size: int
    pages: int
    has_next: bool
    has_prev: bool
    links: Optional[Dict[str, Optional[str]]] = None


class AutoPaginator:
    """
    Counts and slices an arbitrary select() into a PaginatedResponse
    """

    @staticmethod
    async def paginate(
            db: AsyncSession,
            query: Select,
            params: PaginationParams,
            response_schema: Optional[Type[BaseModel]] = None,
            request: Optional[Request] = None
    ) -> PaginatedResponse:
        """
        Paginate an already filtered and ordered query

        Args:
            db: Database session
            query: select() with filters and ordering applied
            params: Pagination parameters
            response_schema: Pydantic schema for response serialization
            request: FastAPI request for building links
        """
        count_query = select(func.count()).select_from(query.order_by(None).subquery())
        total = await db.scalar(count_query)
        total = total or 0

        pages = ceil(total / params.size) if total > 0 else 0

        page_query = (
            query.offset(params.offset)
            .limit(params.size)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(page_query)
        items = result.scalars().all()

        if response_schema:
            items = [response_schema.model_validate(item) for item in items]

        links = None
        if request:
            links = AutoPaginator._build_links(request, params, pages)

        return PaginatedResponse(
            items=items,
            total=total,
            page=params.page,
            size=params.size,
            pages=pages,
            has_next=params.page < pages,
            has_prev=params.page > 1,
            links=links
        )

    @staticmethod
    def _build_links(request: Request, params: PaginationParams, total_pages: int) -> Dict[str, Optional[str]]:
        """Build HATEOAS-style pagination links, preserving filter and sort parameters"""

        def page_url(page: int) -> str:
            return str(request.url.include_query_params(page=page, size=params.size))

        links = {
            "self": page_url(params.page),
            "first": None,
            "prev": None,
            "next": None,
            "last": None
        }

        if total_pages > 0:
            links["first"] = page_url(1)
            links["last"] = page_url(total_pages)

            if params.page > 1:
                links["prev"] = page_url(params.page - 1)

            if params.page < total_pages:
                links["next"] = page_url(params.page + 1)

        return links


# FastAPI dependency for pagination
def get_pagination(
        page: int = QueryParam(1, ge=1, description="Page number"),
        size: int = QueryParam(20, ge=1, le=100, description="Items per page")
) -> PaginationParams:
    """Dependency to extract pagination parameters"""
    return PaginationParams(page=page, size=size)
