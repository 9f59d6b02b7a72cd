"""
Unified search route: map clusters/markers and the paginated list in one call.
"""

import logging
import math
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response

from api.errors import QueryTimeoutError, SearchValidationError, UpstreamQueryError
from api.rate_limit import get_client_ip, search_rate_limiter
from api.schemas import SearchRequest, SearchResponse
from api.services.search_service import SearchService
from dependencies import get_search_service

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=SearchResponse)
async def search_properties(
    body: SearchRequest,
    request: Request,
    response: Response,
    x_request_id: Optional[str] = Header(None),
    service: SearchService = Depends(get_search_service),
):
    """Search a viewport. Total, list and map all come from the same filters."""
    request_id = x_request_id or str(uuid.uuid4())
    headers = {"X-Request-ID": request_id}

    limit_result = search_rate_limiter.check(get_client_ip(request))
    if not limit_result.allowed:
        retry_after = math.ceil(limit_result.retry_after_s or 0)
        raise HTTPException(
            status_code=429,
            detail={
                "error": "Too many requests",
                "type": "RateLimitedError",
                "request_id": request_id,
                "retry_after": retry_after,
                "retryable": True,
            },
            headers={**headers, "Retry-After": str(retry_after)},
        )

    try:
        result = await service.search(
            body.to_viewport(),
            body.filters,
            page=body.page,
            limit=body.limit,
            request_id=request_id,
        )
    except SearchValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_detail(), headers=headers)
    except QueryTimeoutError as e:
        raise HTTPException(status_code=504, detail=e.to_detail(), headers=headers)
    except UpstreamQueryError as e:
        raise HTTPException(status_code=502, detail=e.to_detail(), headers=headers)

    response.headers.update(headers)
    return result
