"""
Query Routes

Answer a natural language question against the active slice.
"""

import logging

from fastapi import APIRouter

from packsql.models.api import QueryRequest
from packsql.pipeline.service import QueryAnswer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/query", response_model=QueryAnswer, response_model_by_alias=True)
async def query(request: QueryRequest) -> QueryAnswer:
    """
    Route the question to a pack, synthesize SQL and execute it.

    Errors are mapped by the application's exception handlers:
    409 when no slice is active, 422 when self-healing is exhausted and
    503 when the LLM or database is unreachable.
    """
    from packsql.api.main import get_query_service

    logger.info(f"Query request received: {request.question[:100]}...")
    service = get_query_service()
    return await service.ask(request.question, category_id=request.category_id)
