"""Admin actions: test sends, waitlist offers and appointment notices."""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.notifications import DispatchOutcome
from app.persistence import RecordNotFoundError
from app.runtime import Services

from .dependencies import ApiError, get_services, require_admin_auth
from .schemas import SendTestRequest, WaitlistOfferRequest

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_auth)])


def _outcome_response(outcome: DispatchOutcome) -> JSONResponse:
    body = {"success": outcome.success, "log_id": outcome.log_id}
    if outcome.success:
        body["message_id"] = outcome.message_id
        return JSONResponse(body)
    body["error"] = outcome.error
    return JSONResponse(body, status_code=500)


@router.post("/notifications/test")
def send_test_notification(payload: SendTestRequest, services: Services = Depends(get_services)):
    outcome = services.notification_service.send_test(payload.type, payload.channel, payload.recipient)
    return _outcome_response(outcome)


@router.post("/waitlist/offers")
def offer_waitlist_slot(payload: WaitlistOfferRequest, services: Services = Depends(get_services)):
    result = services.runner.notify_waitlist(
        payload.service_id, payload.available_date, payload.available_time, payload.max_notifications
    )
    return JSONResponse(result.to_response())


@router.post("/appointments/{appointment_id}/booking-confirmation")
def send_booking_confirmation(appointment_id: str, services: Services = Depends(get_services)):
    try:
        result = services.runner.send_booking_confirmation(appointment_id)
    except RecordNotFoundError:
        raise ApiError(404, "Appointment not found") from None
    return JSONResponse(result.to_response())


@router.post("/appointments/{appointment_id}/cancellation-notice")
def send_cancellation_notice(appointment_id: str, services: Services = Depends(get_services)):
    try:
        result = services.runner.send_cancellation_notice(appointment_id)
    except RecordNotFoundError:
        raise ApiError(404, "Appointment not found") from None
    return JSONResponse(result.to_response())
