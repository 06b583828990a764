"""
Meal subscription API endpoints
"""
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from mealsub.api.deps import get_db, get_now
from mealsub.application.subscriptions import (
    PauseSubscriptionUseCase, ResumeSubscriptionUseCase, CancelMealsUseCase,
    CancelSubscriptionUseCase, ChangeDeliveryDaysUseCase,
    compute_subscription_overview, upcoming_delivery_dates,
)
from mealsub.domain.calendar import WEEKDAY_CODES
from mealsub.domain.errors import Result, STATE_ERRORS, ERR_NOT_FOUND
from mealsub.infrastructure.gateway import NotFoundError


router = APIRouter(prefix="/api/v1/meal-subscriptions", tags=["meal-subscriptions"])


# === Request/Response models ===

class PauseRequest(BaseModel):
    start_date: date
    end_date: date


class ResumeRequest(BaseModel):
    resume_date: date | None = None  # None = resume now


class CancelMealsRequest(BaseModel):
    dates: list[date] | None = None
    date_from: date | None = None  # or a range
    date_to: date | None = None
    reason: str | None = None


class DeliveryDaysRequest(BaseModel):
    delivery_days: list[str]  # ["M", "W", "F"]

    @field_validator("delivery_days")
    @classmethod
    def validate_codes(cls, v: list[str]) -> list[str]:
        """Codes are stored literally, so normalize case only"""
        v = [c.strip().upper() for c in v]
        unknown = [c for c in v if c not in WEEKDAY_CODES]
        if unknown:
            raise ValueError(f"unknown weekday code(s): {', '.join(unknown)}")
        return v


class SubscriptionOverviewResponse(BaseModel):
    id: int
    status: str
    delivery_days: list[str]
    meals_per_week: int
    meals_per_day: int
    start_date: date
    pause_limit_days: int
    total_paused_days: int
    remaining_pause_days: int
    can_pause: bool
    pause_start_date: date | None
    pause_end_date: date | None
    meals_delivered: int
    meals_cancelled: int
    carry_forward_meals: int
    cancellation_count: int
    monthly_cancellations: int
    max_cancellations_per_month: int
    remaining_cancellations: int
    cancellation_cutoff_hours: int
    next_delivery_date: date | None


class CancellationResponse(BaseModel):
    cancelled_count: int
    meals_cancelled: int
    carry_forward_added: int
    carry_forward_forfeited: int
    dates: list[date]


# === Helper functions ===

def _raise_for(result: Result) -> None:
    """Map a rejected Result to an HTTP error: status conflicts 409, rule violations 400"""
    if result.ok:
        return
    err = result.error
    code = 409 if err.kind in STATE_ERRORS else 400
    raise HTTPException(
        status_code=code,
        detail={"kind": err.kind, "message": err.message, "remaining": err.remaining},
    )


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={"kind": ERR_NOT_FOUND, "message": str(exc), "remaining": None},
    )


def _overview(db: Session, sub_id: int, now: datetime) -> SubscriptionOverviewResponse:
    data = compute_subscription_overview(db, sub_id, now)
    return SubscriptionOverviewResponse(**{
        k: v for k, v in data.items() if k in SubscriptionOverviewResponse.model_fields
    })


# === Endpoints ===

@router.get("/{sub_id}", response_model=SubscriptionOverviewResponse)
def get_subscription(
    sub_id: int,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Subscription status, pause usage and cancellation allowance"""
    try:
        return _overview(db, sub_id, now)
    except NotFoundError as e:
        raise _not_found(e)


@router.get("/{sub_id}/next-delivery", response_model=list[date])
def get_next_delivery(
    sub_id: int,
    limit: int = 1,
    horizon_days: int | None = None,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Upcoming delivery dates (empty if none within the horizon)"""
    try:
        return upcoming_delivery_dates(db, sub_id, now, limit=limit, horizon_days=horizon_days)
    except NotFoundError as e:
        raise _not_found(e)


@router.post("/{sub_id}/pause", response_model=SubscriptionOverviewResponse)
def pause_subscription(
    sub_id: int,
    req: PauseRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Pause deliveries for [start_date, end_date]"""
    try:
        result = PauseSubscriptionUseCase(db).execute(sub_id, req.start_date, req.end_date, now)
        _raise_for(result)
        return _overview(db, sub_id, now)
    except NotFoundError as e:
        raise _not_found(e)


@router.post("/{sub_id}/resume", response_model=SubscriptionOverviewResponse)
def resume_subscription(
    sub_id: int,
    req: ResumeRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Resume now, or from a chosen delivery day"""
    try:
        result = ResumeSubscriptionUseCase(db).execute(sub_id, now, resume_date=req.resume_date)
        _raise_for(result)
        return _overview(db, sub_id, now)
    except NotFoundError as e:
        raise _not_found(e)


@router.post("/{sub_id}/cancel-meals", response_model=CancellationResponse)
def cancel_meals(
    sub_id: int,
    req: CancelMealsRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Cancel scheduled meals; already cancelled or delivered dates are skipped"""
    try:
        result = CancelMealsUseCase(db).execute(
            sub_id, now,
            dates=req.dates,
            date_from=req.date_from,
            date_to=req.date_to,
            reason=req.reason,
        )
    except NotFoundError as e:
        raise _not_found(e)
    _raise_for(result)
    outcome = result.value
    return CancellationResponse(
        cancelled_count=outcome.cancelled_count,
        meals_cancelled=outcome.meals_cancelled,
        carry_forward_added=outcome.carry_forward_added,
        carry_forward_forfeited=outcome.carry_forward_forfeited,
        dates=outcome.dates,
    )


@router.post("/{sub_id}/cancel", response_model=SubscriptionOverviewResponse)
def cancel_subscription(
    sub_id: int,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Cancel the whole subscription (terminal)"""
    try:
        result = CancelSubscriptionUseCase(db).execute(sub_id, now)
        _raise_for(result)
        return _overview(db, sub_id, now)
    except NotFoundError as e:
        raise _not_found(e)


@router.put("/{sub_id}/delivery-days", response_model=SubscriptionOverviewResponse)
def change_delivery_days(
    sub_id: int,
    req: DeliveryDaysRequest,
    db: Session = Depends(get_db),
    now: datetime = Depends(get_now),
):
    """Replace the delivery weekday set (must match the plan's weekly count)"""
    try:
        result = ChangeDeliveryDaysUseCase(db).execute(sub_id, req.delivery_days)
        _raise_for(result)
        return _overview(db, sub_id, now)
    except NotFoundError as e:
        raise _not_found(e)
