import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_clock, get_session
from booking_engine.api.schemas.scheduling import (
    CancelBookingRequest,
    CompleteBookingRequest,
    RescheduleBookingRequest,
)
from booking_engine.core.clock import Clock
from booking_engine.models.booking import BookingCreate, BookingPublic, BookingStatus
from booking_engine.services import booking_service
from booking_engine.services.booking_service import booking_to_public

logger = logging.getLogger(__name__)
router = APIRouter(tags=["bookings"])


@router.post("/bookings", response_model=BookingPublic, status_code=status.HTTP_201_CREATED)
async def request_booking(
    body: BookingCreate,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> BookingPublic:
    booking = await booking_service.request_booking(session, body, clock=clock)
    return booking_to_public(booking)


@router.get("/bookings/{booking_id}", response_model=BookingPublic)
async def read_booking(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
) -> BookingPublic:
    return booking_to_public(await booking_service.get_booking(session, booking_id))


@router.get("/providers/{provider_id}/bookings", response_model=list[BookingPublic])
async def list_provider_bookings(
    provider_id: int,
    from_dt: datetime | None = Query(None, alias="from"),
    to_dt: datetime | None = Query(None, alias="to"),
    status_filter: list[BookingStatus] | None = Query(None, alias="status"),
    session: AsyncSession = Depends(get_session),
) -> list[BookingPublic]:
    bookings = await booking_service.list_bookings(
        session, provider_id, from_dt=from_dt, to_dt=to_dt, statuses=status_filter
    )
    return [booking_to_public(b) for b in bookings]


@router.post("/bookings/{booking_id}/confirm", response_model=BookingPublic)
async def confirm_booking(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> BookingPublic:
    """Confirm a requested booking; 409 if the slot was taken meanwhile (re-query slots and retry)."""
    booking = await booking_service.confirm_booking(session, booking_id, clock=clock)
    return booking_to_public(booking)


@router.post("/bookings/{booking_id}/cancel", response_model=BookingPublic)
async def cancel_booking(
    booking_id: int,
    body: CancelBookingRequest,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> BookingPublic:
    booking = await booking_service.cancel_booking(
        session, booking_id, clock=clock, reason=body.reason, cancelled_by=body.cancelled_by
    )
    return booking_to_public(booking)


@router.post("/bookings/{booking_id}/complete", response_model=BookingPublic)
async def complete_booking(
    booking_id: int,
    body: CompleteBookingRequest,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> BookingPublic:
    booking = await booking_service.complete_booking(
        session, booking_id, clock=clock, provider_notes=body.provider_notes
    )
    return booking_to_public(booking)


@router.post("/bookings/{booking_id}/no-show", response_model=BookingPublic)
async def mark_no_show(
    booking_id: int,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> BookingPublic:
    booking = await booking_service.mark_no_show(session, booking_id, clock=clock)
    return booking_to_public(booking)


@router.post("/bookings/{booking_id}/reschedule", response_model=BookingPublic)
async def reschedule_booking(
    booking_id: int,
    body: RescheduleBookingRequest,
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> BookingPublic:
    booking = await booking_service.reschedule_booking(session, booking_id, body.scheduled_at, clock=clock)
    logger.debug("Rescheduled booking %d via API", booking_id)
    return booking_to_public(booking)
