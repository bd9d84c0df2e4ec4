from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from catalog_search.search import SearchService, SearchUnavailableError


router = APIRouter(prefix="/search", tags=["search"])


class SuggestionItem(BaseModel):
    type: str = Field("product", description="Kind of suggested object.")
    id: str = Field(..., description="Primary key of the suggested record.")
    label: str = Field(..., description="Display name.")
    slug: str = Field(..., description="URL-safe slug.")
    thumbnail: Optional[str] = Field(
        None, description="Banner or first image URL, if any."
    )


class ResultItem(BaseModel):
    id: str
    name: str
    slug: str
    description: str = ""
    images: List[str] = Field(default_factory=list)
    banner: Optional[str] = None
    thumbnail: Optional[str] = None
    updatedAt: str = Field(..., description="Last-modified timestamp (ISO 8601).")
    relevance: int = Field(..., description="Tier score used for ordering.")


class ResultsResponse(BaseModel):
    ok: bool = True
    q: str = Field(..., description="Normalized query actually searched.")
    total: int = Field(..., description="Total records matching the query.")
    page: int
    totalPages: int
    items: List[ResultItem] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    ok: bool = False
    message: str
    items: List[Any] = Field(default_factory=list)


def get_search_service(request: Request) -> SearchService:
    return request.app.state.search_service


def _error_response(exc: SearchUnavailableError) -> JSONResponse:
    body = ErrorResponse(message=exc.message)
    return JSONResponse(status_code=500, content=body.model_dump())


# Numbers arrive as raw strings: malformed values are clamped, never rejected.
@router.get(
    "/suggest",
    summary="Autocomplete suggestions",
    response_model=List[SuggestionItem],
    responses={500: {"model": ErrorResponse}},
)
def suggest(
    q: Optional[str] = Query(None, description="Free-text query."),
    limit: Optional[str] = Query(None, description="Max suggestions (1-15, default 8)."),
    service: SearchService = Depends(get_search_service),
):
    try:
        return service.suggest(q, limit)
    except SearchUnavailableError as exc:
        return _error_response(exc)


@router.get(
    "/results",
    summary="Paginated ranked results",
    response_model=ResultsResponse,
    responses={500: {"model": ErrorResponse}},
)
def results(
    q: Optional[str] = Query(None, description="Free-text query."),
    page: Optional[str] = Query(None, description="Page number (1-100000, default 1)."),
    limit: Optional[str] = Query(None, description="Page size (1-100, default 12)."),
    service: SearchService = Depends(get_search_service),
):
    try:
        data: Dict[str, Any] = service.results(q, page, limit)
    except SearchUnavailableError as exc:
        return _error_response(exc)

    return ResultsResponse(
        ok=True,
        q=data["query"],
        total=data["total"],
        page=data["page"],
        totalPages=data["totalPages"],
        items=data["items"],
    )
