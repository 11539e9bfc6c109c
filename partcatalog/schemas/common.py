"""Common Pydantic schemas shared by list results."""

from pydantic import BaseModel


class PaginationMeta(BaseModel):
    """Pagination metadata included in paged results."""

    page: int = 1
    limit: int = 20
    total: int = 0
    total_pages: int = 0
