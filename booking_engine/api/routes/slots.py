from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.api.deps import get_clock, get_session
from booking_engine.api.schemas.scheduling import (
    AvailableSlotsResponse,
    DayScheduleInfo,
    ScheduleResponse,
    SlotInfo,
    SlotMode,
)
from booking_engine.core.clock import Clock
from booking_engine.core.config import settings
from booking_engine.services.booking_service import booking_to_public
from booking_engine.services.slot_service import Slot, generate_slots, schedule_for

router = APIRouter(prefix="/providers", tags=["slots"])


def _slot_info(s: Slot) -> SlotInfo:
    return SlotInfo(start=s.start, end=s.end, duration_minutes=s.duration_minutes)


@router.get("/{provider_id}/slots", response_model=AvailableSlotsResponse)
async def available_slots(
    provider_id: int,
    date_param: date = Query(..., alias="date"),
    duration: int | None = Query(None, ge=1),
    mode: SlotMode = Query(SlotMode.DISCRETE),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> AvailableSlotsResponse:
    """Bookable slots for the date, ascending. ``mode=natural`` returns one slot per availability window."""
    duration_minutes = None if mode == SlotMode.NATURAL else (duration or settings.default_duration_minutes)
    slots = await generate_slots(session, provider_id, date_param, duration_minutes, clock=clock)
    return AvailableSlotsResponse(
        date=date_param.isoformat(),
        provider_id=provider_id,
        mode=mode,
        duration_minutes=duration_minutes,
        slots=[_slot_info(s) for s in slots],
    )


@router.get("/{provider_id}/schedule", response_model=ScheduleResponse)
async def provider_schedule(
    provider_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    duration: int | None = Query(None, ge=1),
    session: AsyncSession = Depends(get_session),
    clock: Clock = Depends(get_clock),
) -> ScheduleResponse:
    days = await schedule_for(
        session,
        provider_id,
        start_date,
        end_date,
        duration or settings.default_duration_minutes,
        clock=clock,
    )
    return ScheduleResponse(
        provider_id=provider_id,
        start_date=start_date,
        end_date=end_date,
        schedule=[
            DayScheduleInfo(
                date=d.day.isoformat(),
                available_slots=[_slot_info(s) for s in d.slots],
                bookings=[booking_to_public(b) for b in d.bookings],
                total_slots=len(d.slots),
                booked_slots=len(d.bookings),
            )
            for d in days
        ],
    )
