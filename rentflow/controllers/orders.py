from flask import Blueprint, jsonify, request, current_app

from ..exceptions import InvalidAmountError
from ..services.common import Result
from ..services.order_service import OrderService

bp = Blueprint("orders", __name__, url_prefix="/")

ERROR_STATUS = {
    "invalid_date": 400,
    "invalid_amount": 400,
    "not_found": 404,
    "invalid_transition": 409,
    "invalid_state": 409,
    "conflict": 409,
}


def _config():
    return current_app.config["RENTFLOW"]


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _respond(result, status: int = 200):
    """Turn a service Result into JSON: the value on success, kind/message on failure."""
    if not result.ok:
        body = {"ok": False, "error": result.kind, "message": result.message}
        return jsonify(body), ERROR_STATUS.get(result.kind, 400)
    value = result.value
    if hasattr(value, "to_dict"):
        value = value.to_dict()
    return jsonify({"ok": True, "data": value}), status


def _load(order_id):
    """Read the order; a client may pin the version it last saw with 'expected_version'."""
    result = OrderService.get_order(order_id)
    if not result.ok:
        return None, result
    order = result.value
    expected = _payload().get("expected_version")
    if expected is not None:
        try:
            order.version = int(expected)
        except (TypeError, ValueError):
            return None, Result.failure(InvalidAmountError("Error: expected_version must be an integer"))
    return order, None


# --------------- Calculators ---------------
@bp.post("/transitions/validate")
def validate_transition():
    data = _payload()
    check = OrderService.validate_transition(
        data.get("current_status"), data.get("requested_status"), config=_config()
    )
    return jsonify(check.to_dict())


@bp.post("/usage")
def usage():
    data = _payload()
    result = OrderService.compute_usage(
        data.get("planned_start"), data.get("planned_end"), data.get("actual_date"),
        data.get("grace_days"), config=_config(),
    )
    return _respond(result)


@bp.post("/pricing")
def pricing():
    data = _payload()
    result = OrderService.compute_pricing(
        data.get("original_amount"),
        data.get("planned_days"),
        data.get("actual_days"),
        data.get("is_early_return", False),
        data.get("is_late_return", False),
        data.get("extra_days", 0),
        config=_config(),
    )
    return _respond(result)


@bp.post("/totals")
def totals():
    data = _payload()
    result = OrderService.compute_order_totals(
        data.get("items") or [],
        data.get("start"),
        data.get("end"),
        data.get("discount_pct", 0),
        data.get("tax_rate_pct"),
        data.get("chargeable_days"),
        config=_config(),
    )
    return _respond(result)


# --------------- Orders ---------------
@bp.post("/orders")
def create_order():
    data = _payload()
    result = OrderService.create_order(
        items=data.get("items") or [],
        start=data.get("rental_start_date"),
        end=data.get("rental_end_date"),
        discount_pct=data.get("discount_pct", 0),
        tax_rate_pct=data.get("tax_rate_pct"),
        chargeable_days=data.get("chargeable_days"),
        deposit_amount=data.get("deposit_amount"),
        client=data.get("client"),
        notes=data.get("notes") or "",
        config=_config(),
    )
    return _respond(result, status=201)


@bp.get("/orders/overdue")
def overdue():
    result = OrderService.overdue_orders(request.args.get("as_of"), config=_config())
    return _respond(result)


@bp.get("/orders/<order_id>")
def get_order(order_id):
    return _respond(OrderService.get_order(order_id))


@bp.post("/orders/<order_id>/status")
def change_status(order_id):
    order, failed = _load(order_id)
    if failed:
        return _respond(failed)
    data = _payload()
    result = OrderService.apply_status_change(
        order,
        data.get("status"),
        actual_date=data.get("actual_date"),
        chargeable_days_override=data.get("chargeable_days"),
        deduction_amount=data.get("deduction_amount", 0),
        deduction_reason=data.get("deduction_reason") or "",
        deposit_notes=data.get("deposit_notes") or "",
        config=_config(),
    )
    return _respond(result)


@bp.post("/orders/<order_id>/deposit/collect")
def collect_deposit(order_id):
    order, failed = _load(order_id)
    if failed:
        return _respond(failed)
    result = OrderService.collect_deposit(order, _payload().get("amount"), config=_config())
    return _respond(result)


@bp.post("/orders/<order_id>/deposit/settle")
def settle_deposit(order_id):
    order, failed = _load(order_id)
    if failed:
        return _respond(failed)
    data = _payload()
    result = OrderService.settle_deposit(
        order,
        deduction_amount=data.get("deduction_amount", 0),
        deduction_reason=data.get("deduction_reason") or "",
        notes=data.get("notes") or "",
        config=_config(),
    )
    return _respond(result)


@bp.post("/orders/<order_id>/payments")
def update_payment(order_id):
    order, failed = _load(order_id)
    if failed:
        return _respond(failed)
    return _respond(OrderService.update_payment(order, _payload().get("amount_paid")))
