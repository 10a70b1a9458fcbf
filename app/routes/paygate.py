"""
PayGate follow-up routes.

Errors are raised as BaseAppError subclasses and rendered by the generic
exception handler.
"""

from fastapi import APIRouter, Depends, Request
from app.core.config import get_config
from app.core.limiter import configured_limit, limiter
from app.security import verify_admin_access
from app.services.follow_up_service import FollowUpService
import logging

logger = logging.getLogger(__name__)

router = APIRouter()


def get_follow_up_service() -> FollowUpService:
    """Build the service from the loaded configuration."""
    return FollowUpService.from_config(get_config())


@router.post(
    "/orders/{order_id}/follow-up",
    dependencies=[Depends(verify_admin_access)],
)
@limiter.limit(configured_limit("follow_up_rate_limit"))
async def follow_up_order(
    request: Request,
    order_id: str,
    service: FollowUpService = Depends(get_follow_up_service),
):
    """Query PayHOST for the order's payment and apply the outcome."""
    result = await service.follow_up(order_id)
    logger.info(f"Follow-up for order {order_id}: {result.status}")
    return result


@router.get(
    "/orders/{order_id}/transaction",
    dependencies=[Depends(verify_admin_access)],
)
@limiter.limit(configured_limit("api_rate_limit"))
async def get_order_transaction(
    request: Request,
    order_id: str,
    service: FollowUpService = Depends(get_follow_up_service),
):
    """
    Get the transaction recorded for an order's payment.

    Raises NotFoundError (404) via the exception handler when none exists.
    """
    return await service.get_transaction(order_id)
