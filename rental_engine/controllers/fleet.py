from flask import Blueprint, request

from ..exceptions import InvalidInterval
from ..extensions import get_engine
from ..models.interval import Interval
from ..models.operations import payload_from_dict
from ..utils.api_response import api_error, api_success
from ..utils.constants import OperationKind

bp = Blueprint("fleet", __name__, url_prefix="/")


@bp.get("/health")
def health():
    return api_success({"status": "ok"})


@bp.post("/vehicles")
def create_vehicle():
    draft = payload_from_dict(OperationKind.CREATE_CAR, request.get_json(silent=True) or {})
    try:
        v = get_engine().create_vehicle(draft)
    except ValueError as e:
        return api_error(str(e), status=400)
    return api_success(v.to_dict(), status=201)


@bp.get("/vehicles/available")
def available_vehicles():
    start = request.args.get("start")
    end = request.args.get("end")
    if not start or not end:
        raise InvalidInterval("Error: start and end query parameters are required")
    interval = Interval.parse(start, end)
    vehicles = get_engine().fleet.available_vehicles(interval)
    return api_success([v.to_dict() for v in vehicles])


@bp.post("/customers")
def create_customer():
    draft = payload_from_dict(OperationKind.CREATE_CUSTOMER, request.get_json(silent=True) or {})
    try:
        c = get_engine().create_customer(draft)
    except ValueError as e:
        return api_error(str(e), status=400)
    return api_success(c.to_dict(), status=201)


@bp.get("/dashboard")
def dashboard():
    return api_success(get_engine().fleet.dashboard_stats())
