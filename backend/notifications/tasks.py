from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from notifications.models import NotificationLog

logger = logging.getLogger(__name__)


def _render(template: str, context: dict) -> str:
    """Render a template relative to the notifications app."""
    return render_to_string(template, context).strip()


def _log_notification(
    type_: str,
    status: str,
    *,
    recipient: str = "",
    user_id: int | None = None,
    booking_id: int | None = None,
    error: str | None = None,
) -> None:
    try:
        NotificationLog.objects.create(
            type=type_,
            status=status,
            recipient=recipient or "",
            user_id=user_id,
            booking_id=booking_id,
            error=error or "",
        )
    except Exception:
        logger.exception(
            "notifications: failed to persist notification log",
            extra={"type": type_, "status": status},
        )


def _send_email_logged(
    type_: str,
    *,
    to_email: str | None,
    subject: str,
    template: str,
    context: dict,
    user_id: int | None = None,
    booking_id: int | None = None,
) -> bool:
    if not to_email:
        _log_notification(
            type_,
            NotificationLog.Status.FAILED,
            user_id=user_id,
            booking_id=booking_id,
            error="missing recipient email",
        )
        logger.warning("notifications: cannot send email without recipient")
        return False

    context = {"site_name": getattr(settings, "SITE_NAME", "StayHub"), **context}
    message = EmailMultiAlternatives(
        subject=subject,
        body=_render(f"email/{template}", context),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[to_email],
    )
    try:
        message.send(fail_silently=False)
    except Exception as exc:
        logger.exception(
            "notifications: email send failed",
            extra={"type": type_, "booking_id": booking_id, "user_id": user_id},
        )
        _log_notification(
            type_,
            NotificationLog.Status.FAILED,
            recipient=to_email,
            user_id=user_id,
            booking_id=booking_id,
            error=str(exc) or exc.__class__.__name__,
        )
        return False
    _log_notification(
        type_,
        NotificationLog.Status.SENT,
        recipient=to_email,
        user_id=user_id,
        booking_id=booking_id,
    )
    return True


def _get_booking(booking_id: int):
    from bookings.models import Booking

    try:
        return Booking.objects.select_related("hotel", "room", "user", "hotel_owner").get(
            pk=booking_id
        )
    except Booking.DoesNotExist:
        logger.warning("notifications: booking %s no longer exists", booking_id)
        return None


def _display_name(user) -> str:
    if not user:
        return "Unknown"
    full_name = (user.get_full_name() or "").strip() if hasattr(user, "get_full_name") else ""
    if full_name:
        return full_name
    return getattr(user, "username", "") or str(user)


def _format_date(value: Optional[date]) -> str:
    if not value:
        return "N/A"
    return value.strftime("%b %d, %Y")


def _booking_context(booking) -> dict:
    return {
        "booking_id": booking.pk,
        "guest_name": _display_name(booking.user),
        "guest_email": getattr(booking.user, "email", "") or "",
        "owner_name": _display_name(booking.hotel_owner),
        "hotel_title": booking.hotel.title,
        "room_title": booking.room.title,
        "start_date_display": _format_date(booking.start_date),
        "end_date_display": _format_date(booking.end_date),
        "nights": booking.nights,
        "breakfast_included": booking.breakfast_included,
        "total_price": booking.total_price,
        "currency": booking.currency,
        "payment_intent_id": booking.payment_intent_id,
    }


@shared_task(queue="emails")
def send_booking_confirmed_email(booking_id: int):
    """Email the guest once their booking is paid."""
    booking = _get_booking(booking_id)
    if booking is None or not booking.payment_status:
        return
    _send_email_logged(
        "booking_confirmed",
        to_email=booking.user.email,
        subject=f"Your stay at {booking.hotel.title} is confirmed",
        template="booking_confirmed.txt",
        context=_booking_context(booking),
        user_id=booking.user_id,
        booking_id=booking.pk,
    )


@shared_task(queue="emails")
def send_hotel_owner_booking_email(booking_id: int):
    """Tell the hotel owner a room was booked and paid."""
    booking = _get_booking(booking_id)
    if booking is None or not booking.payment_status:
        return
    _send_email_logged(
        "hotel_owner_booking",
        to_email=booking.hotel_owner.email,
        subject=f"New booking for {booking.room.title}",
        template="hotel_owner_booking.txt",
        context=_booking_context(booking),
        user_id=booking.hotel_owner_id,
        booking_id=booking.pk,
    )


@shared_task(queue="emails")
def send_refund_required_alert(booking_id: int):
    """Alert operations that a collected payment has to be refunded."""
    booking = _get_booking(booking_id)
    if booking is None or not booking.needs_refund():
        return
    context = _booking_context(booking)
    context["failure_message"] = booking.failure_message
    refund = booking.transactions.filter(kind="REFUND_REQUIRED").first()
    context["refund_amount"] = refund.amount if refund else booking.total_price
    _send_email_logged(
        "refund_required",
        to_email=getattr(settings, "OPS_ALERT_EMAIL", ""),
        subject=f"Refund required for booking #{booking.pk}",
        template="refund_required.txt",
        context=context,
        booking_id=booking.pk,
    )
