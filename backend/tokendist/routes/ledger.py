# Overview: Flask API routes for the distribution event ledger and balances; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..errors import ValidationError
from ..models.types import amount_str
from ..services import ledger_service, permission_service, token_ledger, payment_ledger
from ..decorators import require_caller, require_owner
from ..validation import normalize_address

"""
Time semantics:
- occurred_at is host-clock business time, returned as ISO-8601 with Z.
- Events are returned newest first.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/ledger")


@ledger_bp.get("/events")
def list_events_route():
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))
    offset = max(0, request.args.get("offset", default=0, type=int))

    account = request.args.get("account")
    if account:
        try:
            account = normalize_address(account, "account")
        except ValidationError as e:
            return jsonify(e.to_dict()), e.status_code

    group_code = request.args.get("group")
    events, total = ledger_service.list_events(
        event_category=request.args.get("category"),
        event_type=request.args.get("event_type"),
        account=account,
        round_index=request.args.get("round", type=int),
        group_code=group_code.upper() if group_code else None,
        limit=limit,
        offset=offset,
    )

    return jsonify({
        "items": [ev.to_dict() for ev in events],
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@ledger_bp.get("/balances/<address>")
def get_balances_route(address: str):
    """Token and payment-asset balances held by one account."""
    try:
        account = normalize_address(address, "address")
    except ValidationError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "account": account,
        "token_balance": amount_str(token_ledger.balance_of(account)),
        "payment_balance": amount_str(payment_ledger.balance_of(account)),
        "token_decimals": token_ledger.decimals(),
        "payment_decimals": payment_ledger.decimals(),
    }), 200


@ledger_bp.get("/supply")
def get_supply_route():
    supply = token_ledger.get_supply()
    return jsonify({"supply": supply.to_dict()}), 200


@ledger_bp.get("/security-events")
@require_caller
@require_owner
def list_security_events_route():
    """Requires: owner"""
    limit = request.args.get("limit", default=100, type=int)
    limit = max(1, min(limit, 500))
    events = permission_service.list_security_events(limit)
    return jsonify({"items": [ev.to_dict() for ev in events], "limit": limit}), 200
