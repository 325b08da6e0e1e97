from flask import Blueprint, request

from ..exceptions import EngineError
from ..extensions import get_engine
from ..models.operations import operation_from_dict
from ..utils.api_response import api_error, api_success

bp = Blueprint("sync", __name__, url_prefix="/")


@bp.post("/sync")
def sync_offline_queue():
    """
    Replay a client's offline queue. Body: {"operations": [...]} in the order
    the client recorded them. The whole batch is decoded before anything is
    applied, so a malformed entry rejects the request without side effects.
    """
    body = request.get_json(silent=True) or {}
    raw_ops = body.get("operations") if isinstance(body, dict) else None
    if not isinstance(raw_ops, list):
        return api_error("operations must be a list", status=400)

    ops = []
    for pos, raw in enumerate(raw_ops):
        try:
            ops.append(operation_from_dict(raw))
        except EngineError as e:
            return api_error(e.message, status=400, code=e.code, index=pos)

    report = get_engine().reconcile(ops)
    return api_success(report.to_dict())
