# backend/app/routes/bookings.py
"""
Booking request routes for the coaching platform.

Clients ask a coach for a session, the coach prices and accepts (or
rejects) it, and the client pays within the payment window. Either side may
cancel until the request is paid.

Router Endpoints:
    POST /request - Client creates a booking request
    GET /client/requests - Client's requests, optional status filter
    GET /client/requests/{id} - One of the client's requests
    POST /client/requests/{id}/pay - Confirm a Stripe authorization
    POST /requests/{id}/cancel - Client or coach cancels
    GET /requests/{id}/events - Audit trail
    GET /requests/{id}/session - Session created on payment
    GET /coach/pending - Coach's pending requests
    GET /coach/requests - Coach's requests, optional status filter
    GET /coach/requests/{id} - One of the coach's requests
    POST /coach/requests/{id}/accept - Price and accept
    POST /coach/requests/{id}/reject - Decline
    GET /overview - Per-status counts for the caller
    POST /admin/expire - Run the expiry sweep
"""

import asyncio
import logging
from typing import Annotated, List, NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ..api.dependencies import (
    get_booking_request_service,
    get_current_client,
    get_current_coach,
    get_current_user,
    require_admin,
)
from ..core.exceptions import DomainException
from ..core.ulid_helper import ULID_PATH_PATTERN
from ..domain.booking_state import BookingRequestStatus
from ..models.booking_request import BookingRequest
from ..models.user import User
from ..schemas.booking_request import (
    BookingEventResponse,
    BookingOverviewResponse,
    BookingRequestAccept,
    BookingRequestCancel,
    BookingRequestCreate,
    BookingRequestListResponse,
    BookingRequestPay,
    BookingRequestReject,
    BookingRequestResponse,
    CoachingSessionResponse,
    ExpirySweepResponse,
)
from ..services.booking_request_service import BookingRequestService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["bookings"])

BookingRequestId = Annotated[str, Path(pattern=ULID_PATH_PATTERN, description="Booking request ULID")]


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _list_response(booking_requests: List[BookingRequest]) -> BookingRequestListResponse:
    return BookingRequestListResponse(
        items=[BookingRequestResponse.model_validate(br) for br in booking_requests],
        total=len(booking_requests),
    )


# Client endpoints


@router.post(
    "/request",
    response_model=BookingRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid request (e.g. booking yourself)"},
        404: {"description": "Coach not found or inactive"},
    },
)
async def create_booking_request(
    payload: BookingRequestCreate = Body(...),
    current_user: User = Depends(get_current_client),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    """Ask a coach for a session. The request starts out pending."""
    try:
        booking_request = await asyncio.to_thread(service.create_request, current_user, payload)
        return BookingRequestResponse.model_validate(booking_request)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/client/requests", response_model=BookingRequestListResponse)
async def list_client_requests(
    status_filter: Optional[BookingRequestStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_client),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestListResponse:
    """The client's requests, newest first."""
    try:
        booking_requests = await asyncio.to_thread(
            service.list_client_requests, current_user, status_filter
        )
        return _list_response(booking_requests)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/client/requests/{booking_request_id}", response_model=BookingRequestResponse)
async def get_client_request(
    booking_request_id: BookingRequestId,
    current_user: User = Depends(get_current_client),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    try:
        booking_request = await asyncio.to_thread(
            service.get_for_client, current_user, booking_request_id
        )
        return BookingRequestResponse.model_validate(booking_request)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/client/requests/{booking_request_id}/pay",
    response_model=BookingRequestResponse,
    responses={
        404: {"description": "Booking request not found"},
        422: {"description": "Not awaiting payment, deadline passed, or payment not verified"},
    },
)
async def pay_booking_request(
    booking_request_id: BookingRequestId,
    payload: BookingRequestPay = Body(...),
    current_user: User = Depends(get_current_client),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    """
    Confirm the request once the client's card authorization went through.

    The PaymentIntent is re-read from Stripe; the client's word is not enough.
    """
    try:
        booking_request = await asyncio.to_thread(
            service.confirm_payment, current_user, booking_request_id, payload.payment_intent_id
        )
        return BookingRequestResponse.model_validate(booking_request)
    except DomainException as e:
        handle_domain_exception(e)


# Either party


@router.post("/requests/{booking_request_id}/cancel", response_model=BookingRequestResponse)
async def cancel_booking_request(
    booking_request_id: BookingRequestId,
    payload: Optional[BookingRequestCancel] = Body(None),
    current_user: User = Depends(get_current_user),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    """Cancel an unpaid request. Any held authorization is released."""
    reason = payload.reason if payload else None
    try:
        booking_request = await asyncio.to_thread(
            service.cancel_request, current_user, booking_request_id, reason
        )
        return BookingRequestResponse.model_validate(booking_request)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/requests/{booking_request_id}/events", response_model=List[BookingEventResponse])
async def list_booking_request_events(
    booking_request_id: BookingRequestId,
    current_user: User = Depends(get_current_user),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> List[BookingEventResponse]:
    """Audit trail in the order it happened."""
    try:
        events = await asyncio.to_thread(service.list_events, current_user, booking_request_id)
        return [BookingEventResponse.model_validate(event) for event in events]
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/requests/{booking_request_id}/session", response_model=CoachingSessionResponse)
async def get_booking_request_session(
    booking_request_id: BookingRequestId,
    current_user: User = Depends(get_current_user),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> CoachingSessionResponse:
    """Scheduled session for a paid request; 404 until payment is confirmed."""
    try:
        session = await asyncio.to_thread(service.get_session, current_user, booking_request_id)
        return CoachingSessionResponse.model_validate(session)
    except DomainException as e:
        handle_domain_exception(e)


# Coach endpoints


@router.get("/coach/pending", response_model=BookingRequestListResponse)
async def list_coach_pending(
    current_user: User = Depends(get_current_coach),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestListResponse:
    try:
        booking_requests = await asyncio.to_thread(service.list_coach_pending, current_user)
        return _list_response(booking_requests)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/coach/requests", response_model=BookingRequestListResponse)
async def list_coach_requests(
    status_filter: Optional[BookingRequestStatus] = Query(None, alias="status"),
    current_user: User = Depends(get_current_coach),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestListResponse:
    try:
        booking_requests = await asyncio.to_thread(
            service.list_coach_requests, current_user, status_filter
        )
        return _list_response(booking_requests)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/coach/requests/{booking_request_id}", response_model=BookingRequestResponse)
async def get_coach_request(
    booking_request_id: BookingRequestId,
    current_user: User = Depends(get_current_coach),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    try:
        booking_request = await asyncio.to_thread(
            service.get_for_coach, current_user, booking_request_id
        )
        return BookingRequestResponse.model_validate(booking_request)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/coach/requests/{booking_request_id}/accept",
    response_model=BookingRequestResponse,
    responses={
        400: {"description": "Missing price or unusable rate"},
        422: {"description": "Request is not pending or has expired"},
    },
)
async def accept_booking_request(
    booking_request_id: BookingRequestId,
    payload: BookingRequestAccept = Body(...),
    current_user: User = Depends(get_current_coach),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    """Accept with a final price; the client then has the payment window to pay."""
    try:
        booking_request = await asyncio.to_thread(
            service.accept_request,
            current_user,
            booking_request_id,
            final_price_cents=payload.final_price_cents,
            coach_rate_id=payload.coach_rate_id,
            coach_notes=payload.coach_notes,
        )
        return BookingRequestResponse.model_validate(booking_request)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/coach/requests/{booking_request_id}/reject", response_model=BookingRequestResponse)
async def reject_booking_request(
    booking_request_id: BookingRequestId,
    payload: Optional[BookingRequestReject] = Body(None),
    current_user: User = Depends(get_current_coach),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingRequestResponse:
    reason = payload.reason if payload else None
    try:
        booking_request = await asyncio.to_thread(
            service.reject_request, current_user, booking_request_id, reason
        )
        return BookingRequestResponse.model_validate(booking_request)
    except DomainException as e:
        handle_domain_exception(e)


# Dashboard / maintenance


@router.get("/overview", response_model=BookingOverviewResponse)
async def get_booking_overview(
    current_user: User = Depends(get_current_user),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> BookingOverviewResponse:
    try:
        overview = await asyncio.to_thread(service.get_overview, current_user)
        return BookingOverviewResponse(**overview)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/admin/expire", response_model=ExpirySweepResponse)
async def expire_stale_requests(
    dry_run: bool = Query(False),
    current_user: User = Depends(require_admin),
    service: BookingRequestService = Depends(get_booking_request_service),
) -> ExpirySweepResponse:
    """Expire requests whose response window or payment deadline has passed."""
    try:
        result = await asyncio.to_thread(service.expire_stale_requests, None, dry_run)
        logger.info(f"Admin {current_user.id} ran expiry sweep (dry_run={dry_run})")
        return ExpirySweepResponse(expired=result.expired, failed=result.failed, dry_run=result.dry_run)
    except DomainException as e:
        handle_domain_exception(e)
