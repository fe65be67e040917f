from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from .. import schemas
from ..auth import CurrentUser
from ..dependencies import Gateway
from ..services import subscription_service
from ..services.payment_gateway import PaymentGatewayError

router = APIRouter(prefix="/api", tags=["subscriptions"])


@router.post("/subscriptions/create", response_model=schemas.SubscriptionCreateResponse)
async def create_subscription(
    payload: schemas.SubscriptionCreateRequest,
    current: CurrentUser,
    gateway: Gateway,
) -> schemas.SubscriptionCreateResponse:
    try:
        session = await subscription_service.create_subscription_session(
            current,
            gateway,
            plan=payload.plan,
            period=payload.period,
            success_url=payload.success_url,
            cancel_url=payload.cancel_url,
        )
    except (subscription_service.SubscriptionError, PaymentGatewayError) as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return schemas.SubscriptionCreateResponse(**session)


@router.post("/subscriptions/cancel", response_model=schemas.SubscriptionCancelResponse)
async def cancel_subscription(
    current: CurrentUser, gateway: Gateway
) -> schemas.SubscriptionCancelResponse:
    try:
        result = await subscription_service.cancel_subscription(current, gateway)
    except (subscription_service.SubscriptionError, PaymentGatewayError) as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return schemas.SubscriptionCancelResponse(**result)


@router.get("/subscriptions/status", response_model=schemas.SubscriptionStatusResponse)
async def subscription_status(current: CurrentUser) -> schemas.SubscriptionStatusResponse:
    result = await subscription_service.get_subscription_status(current)
    subscription = result["subscription"]
    return schemas.SubscriptionStatusResponse(
        subscription=schemas.SubscriptionRecord(**subscription) if subscription else None,
        has_premium_access=result["has_premium_access"],
    )


@router.post("/trial/start", response_model=schemas.TrialStartResponse)
async def start_trial(
    payload: schemas.TrialStartRequest, current: CurrentUser
) -> schemas.TrialStartResponse:
    try:
        trial_ends_at = await subscription_service.start_trial(current, plan=payload.plan)
    except subscription_service.SubscriptionError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return schemas.TrialStartResponse(
        trial_ends_at=trial_ends_at,
        message="Free trial started",
    )


@router.get("/payments", response_model=list[schemas.PaymentRecord])
async def payment_history(current: CurrentUser) -> list[schemas.PaymentRecord]:
    rows = await subscription_service.list_payment_history(current)
    return [schemas.PaymentRecord(**row) for row in rows]


@router.get("/payments/{session_id}", response_model=schemas.PaymentDetailsResponse)
async def payment_details(session_id: str, gateway: Gateway) -> schemas.PaymentDetailsResponse:
    if not session_id.startswith("cs_"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid session id")
    try:
        details = await subscription_service.get_payment_details(gateway, session_id)
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return schemas.PaymentDetailsResponse(**details)


@router.get("/stripe/products", response_model=list[schemas.Product])
async def list_products(gateway: Gateway) -> list[schemas.Product]:
    try:
        products = await gateway.list_products()
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail)
    return [schemas.Product(**product) for product in products]
