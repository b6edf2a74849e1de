# backend/app/routes/payments.py
"""
Payment routes for the coaching platform.

Covers the coach rate catalog (managed by the coach, readable by anyone
through the public endpoints) and the authorize/capture flow that pays for
accepted booking requests.

Router Endpoints:
    GET /coaches/{coach_id}/rates            → Rate editor listing (incl. inactive)
    POST /coaches/{coach_id}/rates           → Create a rate
    PUT /coaches/{coach_id}/rates/bulk       → Update many rates at once
    PUT /rates/{rate_id}                     → Update a rate
    DELETE /rates/{rate_id}                  → Deactivate a rate
    POST /rates/{rate_id}/duplicate          → Copy a rate
    GET /public/coaches/{coach_id}/rates     → Active rates
    GET /public/coaches/{coach_id}/rates/suggest → Matching rate for a request
    POST /public/calculate-package-discount  → Package price quote
    POST /v2/authorize                       → Manual-capture PaymentIntent
    POST /v2/capture                         → Capture authorized funds
    POST /v2/cancel                          → Release an authorization
    GET /v2/status/{payment_id}              → Payment record
    POST /v2/webhook                         → Stripe webhooks (signature verified)
"""

import asyncio
import logging
from typing import Annotated, NoReturn

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, Request, status

from ..api.dependencies import (
    get_coach_rate_service,
    get_current_client,
    get_current_user,
    get_payment_service,
)
from ..core.exceptions import DomainException
from ..core.ulid_helper import ULID_PATH_PATTERN
from ..domain.booking_state import SessionType
from ..models.user import User
from ..schemas.coach_rate import (
    CoachRateBulkUpdate,
    CoachRateCreate,
    CoachRateListResponse,
    CoachRateResponse,
    CoachRateUpdate,
    PackageDiscountRequest,
    PackageDiscountResponse,
    SuggestedRateResponse,
)
from ..schemas.payment import (
    AuthorizePaymentRequest,
    AuthorizePaymentResponse,
    PaymentActionRequest,
    PaymentResponse,
    WebhookResponse,
)
from ..services.coach_rate_service import CoachRateService, calculate_package_discount
from ..services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

CoachId = Annotated[str, Path(pattern=ULID_PATH_PATTERN, description="Coach user ULID")]
RateId = Annotated[str, Path(pattern=ULID_PATH_PATTERN, description="Coach rate ULID")]
PaymentId = Annotated[str, Path(pattern=ULID_PATH_PATTERN, description="Payment ULID")]


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


# ========== Coach Rate Catalog ==========


@router.get("/coaches/{coach_id}/rates", response_model=CoachRateListResponse)
async def list_coach_rates(
    coach_id: CoachId,
    current_user: User = Depends(get_current_user),
    rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> CoachRateListResponse:
    """All of a coach's rates, inactive ones included. Coach or admin only."""
    try:
        rates = await asyncio.to_thread(rate_service.list_managed_rates, current_user, coach_id)
        return CoachRateListResponse(
            coach_id=coach_id, rates=[CoachRateResponse.model_validate(r) for r in rates]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/coaches/{coach_id}/rates",
    response_model=CoachRateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_coach_rate(
    coach_id: CoachId,
    payload: CoachRateCreate = Body(...),
    current_user: User = Depends(get_current_user),
    rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> CoachRateResponse:
    try:
        rate = await asyncio.to_thread(rate_service.create_rate, current_user, coach_id, payload)
        return CoachRateResponse.model_validate(rate)
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/coaches/{coach_id}/rates/bulk", response_model=CoachRateListResponse)
async def bulk_update_coach_rates(
    coach_id: CoachId,
    payload: CoachRateBulkUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> CoachRateListResponse:
    """Apply every listed update, or none if any rate is missing or invalid."""
    try:
        rates = await asyncio.to_thread(
            rate_service.bulk_update_rates, current_user, coach_id, payload.rates
        )
        return CoachRateListResponse(
            coach_id=coach_id, rates=[CoachRateResponse.model_validate(r) for r in rates]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.put("/rates/{rate_id}", response_model=CoachRateResponse)
async def update_coach_rate(
    rate_id: RateId,
    payload: CoachRateUpdate = Body(...),
    current_user: User = Depends(get_current_user),
    rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> CoachRateResponse:
    try:
        rate = await asyncio.to_thread(rate_service.update_rate, current_user, rate_id, payload)
        return CoachRateResponse.model_validate(rate)
    except DomainException as e:
        handle_domain_exception(e)


@router.delete("/rates/{rate_id}", response_model=CoachRateResponse)
async def deactivate_coach_rate(
    rate_id: RateId,
    current_user: User = Depends(get_current_user),
    rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> CoachRateResponse:
    """Soft delete: the rate stops being offered but stays on record."""
    try:
        rate = await asyncio.to_thread(rate_service.deactivate_rate, current_user, rate_id)
        return CoachRateResponse.model_validate(rate)
    except DomainException as e:
        handle_domain_exception(e)


@router.post(
    "/rates/{rate_id}/duplicate",
    response_model=CoachRateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_coach_rate(
    rate_id: RateId,
    current_user: User = Depends(get_current_user),
    rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> CoachRateResponse:
    try:
        rate = await asyncio.to_thread(rate_service.duplicate_rate, current_user, rate_id)
        return CoachRateResponse.model_validate(rate)
    except DomainException as e:
        handle_domain_exception(e)


# ========== Public Routes (No Authentication) ==========


@router.get("/public/coaches/{coach_id}/rates", response_model=CoachRateListResponse)
async def list_public_coach_rates(
    coach_id: CoachId,
    rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> CoachRateListResponse:
    try:
        rates = await asyncio.to_thread(rate_service.list_rates, coach_id)
        return CoachRateListResponse(
            coach_id=coach_id, rates=[CoachRateResponse.model_validate(r) for r in rates]
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/public/coaches/{coach_id}/rates/suggest", response_model=SuggestedRateResponse)
async def suggest_coach_rate(
    coach_id: CoachId,
    session_type: SessionType = Query(...),
    duration_minutes: int = Query(..., gt=0),
    rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> SuggestedRateResponse:
    """Active rate matching the session type and duration, if the coach has one."""
    try:
        rate = await asyncio.to_thread(
            rate_service.find_suggested_rate, coach_id, session_type, duration_minutes
        )
        return SuggestedRateResponse(
            rate=CoachRateResponse.model_validate(rate) if rate is not None else None
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/public/calculate-package-discount", response_model=PackageDiscountResponse)
async def calculate_package_discount_quote(
    payload: PackageDiscountRequest = Body(...),
) -> PackageDiscountResponse:
    try:
        quote = calculate_package_discount(
            payload.rate_cents, payload.sessions, payload.discount_percentage
        )
        return PackageDiscountResponse.model_validate(quote)
    except DomainException as e:
        handle_domain_exception(e)


# ========== Authorize / Capture ==========


@router.post(
    "/v2/authorize",
    response_model=AuthorizePaymentResponse,
    responses={
        404: {"description": "Booking request not found"},
        422: {"description": "Booking request is not awaiting payment or has expired"},
    },
)
async def authorize_payment(
    payload: AuthorizePaymentRequest = Body(...),
    current_user: User = Depends(get_current_client),
    payment_service: PaymentService = Depends(get_payment_service),
) -> AuthorizePaymentResponse:
    """
    Hold the accepted price on the client's card.

    Returns the PaymentIntent client secret; the frontend confirms it with
    Stripe and then calls the booking pay endpoint.
    """
    try:
        result = await asyncio.to_thread(
            payment_service.authorize, current_user, payload.booking_request_id
        )
        return AuthorizePaymentResponse(
            payment=PaymentResponse.model_validate(result.payment),
            client_secret=result.client_secret,
        )
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/v2/capture", response_model=PaymentResponse)
async def capture_payment(
    payload: PaymentActionRequest = Body(...),
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(payment_service.capture, current_user, payload.payment_id)
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)


@router.post("/v2/cancel", response_model=PaymentResponse)
async def cancel_payment_authorization(
    payload: PaymentActionRequest = Body(...),
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(
            payment_service.cancel_authorization, current_user, payload.payment_id
        )
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)


@router.get("/v2/status/{payment_id}", response_model=PaymentResponse)
async def get_payment_status(
    payment_id: PaymentId,
    current_user: User = Depends(get_current_user),
    payment_service: PaymentService = Depends(get_payment_service),
) -> PaymentResponse:
    try:
        payment = await asyncio.to_thread(payment_service.get_status, current_user, payment_id)
        return PaymentResponse.model_validate(payment)
    except DomainException as e:
        handle_domain_exception(e)


# ========== Webhook Route (No Authentication) ==========


@router.post("/v2/webhook", response_model=WebhookResponse)
async def handle_stripe_webhook(
    request: Request,
    payment_service: PaymentService = Depends(get_payment_service),
) -> WebhookResponse:
    """
    Apply Stripe PaymentIntent events.

    Note:
        This endpoint has no authentication as it uses webhook signature verification
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    try:
        result = await asyncio.to_thread(payment_service.handle_webhook, payload, sig_header)
        return WebhookResponse(**result)
    except DomainException as e:
        handle_domain_exception(e)
