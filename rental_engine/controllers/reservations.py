from flask import Blueprint, request

from ..exceptions import InvalidInterval
from ..extensions import get_engine
from ..models.interval import Interval
from ..models.operations import BookingPatch, payload_from_dict
from ..utils.api_response import api_error, api_success, engine_error
from ..utils.constants import OperationKind

bp = Blueprint("reservations", __name__, url_prefix="/")


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _interval_from_args() -> Interval:
    start = request.args.get("start")
    end = request.args.get("end")
    if not start or not end:
        raise InvalidInterval("Error: start and end query parameters are required")
    return Interval.parse(start, end)


def _result_response(result, status: int = 200):
    """Turn a BookingResult into JSON; refusals keep the current record for context."""
    ok, error, reservation = result
    if ok:
        return api_success(reservation.to_dict(), status=status)
    extra = {"data": reservation.to_dict()} if reservation is not None else {}
    return engine_error(error, **extra)


@bp.get("/vehicles/<vehicle_id>/availability")
def vehicle_availability(vehicle_id):
    """Is the vehicle free for ?start=YYYY-MM-DD&end=YYYY-MM-DD (both days included)?"""
    interval = _interval_from_args()
    engine = get_engine()
    return api_success({
        "vehicle_id": vehicle_id,
        "interval": interval.to_dict(),
        "available": engine.check_availability(vehicle_id, interval),
        "booked": [iv.to_dict() for iv in engine.reservations.availability_calendar(vehicle_id)],
    })


@bp.post("/reservations")
def create_reservation():
    draft = payload_from_dict(OperationKind.CREATE_BOOKING, _json_body())
    return _result_response(get_engine().create_reservation(draft), status=201)


@bp.get("/reservations/<reservation_id>")
def get_reservation(reservation_id):
    r = get_engine().reservations.get_reservation(reservation_id)
    if r is None:
        return api_error("Reservation not found", status=404, code="RecordNotFound")
    return api_success(r.to_dict())


@bp.patch("/reservations/<reservation_id>")
def update_reservation(reservation_id):
    patch: BookingPatch = payload_from_dict(OperationKind.UPDATE_BOOKING, _json_body())
    return _result_response(get_engine().update_reservation(reservation_id, patch))


@bp.post("/reservations/<reservation_id>/confirm")
def confirm_reservation(reservation_id):
    return _result_response(get_engine().confirm_reservation(reservation_id))


@bp.post("/reservations/<reservation_id>/cancel")
def cancel_reservation(reservation_id):
    return _result_response(get_engine().cancel_reservation(reservation_id))


@bp.post("/reservations/<reservation_id>/return")
def return_reservation(reservation_id):
    total = _json_body().get("total_amount")
    try:
        total = float(total) if total not in (None, "") else None
    except (TypeError, ValueError):
        return api_error("total_amount must be a number", status=400)
    return _result_response(get_engine().return_reservation(reservation_id, total))
