"""
FastAPI router module for natural-language metrics questions.

Implements POST /api/ai-query. The question is turned into a date range by
the LLM, the reconciled metrics for that range are fetched, and the LLM
writes a conversational answer.

Response shape: { query, dateRange, intent, answer, dataUsed }

Error mapping:
- unparseable date extraction -> 500 { error, aiResponse }
- LLM provider failure -> 502
- inverted extracted range -> 400
- dialer failure -> 502
"""

import logging
from typing import Union

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse

from backend.core.dependencies import AnalystDep, MetricsServiceDep
from backend.models import AIQueryRequest, AIQueryResponse
from backend.services.ai_query import LLMResponseError, LLMServiceError, answer_query
from backend.services.metrics_query import InvalidDateRangeError
from backend.services.vendor_metrics import VendorAPIError


logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/ai-query", response_model=AIQueryResponse)
async def ai_query(
    request: AIQueryRequest,
    service: MetricsServiceDep,
    analyst: AnalystDep,
) -> Union[AIQueryResponse, JSONResponse]:
    """
    Answer a natural-language question about the metrics.

    Args:
        request: Body with the free-text ``query``

    Returns:
        AIQueryResponse with the answer and the data it was based on
    """
    try:
        return await answer_query(request.query, analyst, service)

    except LLMResponseError as e:
        logger.error(f"AI query '{request.query}' failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": str(e), "aiResponse": e.raw_text},
        )
    except LLMServiceError as e:
        logger.error(f"LLM provider error: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=str(e))
    except InvalidDateRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except VendorAPIError as e:
        logger.error(f"Dialer error while answering AI query: {e}", exc_info=True)
        raise HTTPException(status_code=502, detail=str(e))
    except Exception as e:
        logger.error(f"Error processing AI query: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=f"Failed to process AI query: {str(e)}"
        )
