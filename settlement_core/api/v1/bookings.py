"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from settlement_core.api.deps import CurrentUser, get_booking_service
from settlement_core.models.booking import Booking
from settlement_core.schemas.booking import (
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusResponse,
)
from settlement_core.services.booking_service import BookingService

router = APIRouter()

Bookings = Annotated[BookingService, Depends(get_booking_service)]


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: BookingCreate,
    current_user: CurrentUser,
    bookings: Bookings,
) -> Booking:
    """Create a pending booking for a destination, hotel or hire car."""
    return await bookings.create_booking(
        payer_id=current_user.id,
        kind=request.kind,
        item_id=request.item_id,
        start_date=request.start_date,
        end_date=request.end_date,
        amount=request.amount,
        currency=request.currency,
    )


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    current_user: CurrentUser,
    bookings: Bookings,
    status_filter: str | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> BookingListResponse:
    """List the caller's bookings (all bookings for admins)."""
    items, total = await bookings.list_bookings(current_user, status_filter, page, page_size)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in items],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: CurrentUser,
    bookings: Bookings,
) -> Booking:
    return await bookings.get_booking(booking_id, current_user)


@router.get("/{booking_id}/status", response_model=BookingStatusResponse)
async def get_booking_status(
    booking_id: UUID,
    current_user: CurrentUser,
    bookings: Bookings,
) -> BookingStatusResponse:
    """Poll the booking's status after payment. Never cached."""
    view = await bookings.get_status(booking_id)
    return BookingStatusResponse(
        booking_id=booking_id,
        status=view.status,
        payment_status=view.payment_status,
        message=view.message,
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    current_user: CurrentUser,
    bookings: Bookings,
) -> Booking:
    """Cancel a pending or confirmed booking (payer or admin)."""
    return await bookings.cancel_booking(booking_id, current_user)
