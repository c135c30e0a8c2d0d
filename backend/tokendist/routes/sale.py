# Overview: Flask API routes for the token sale; parses input and returns JSON responses.

# backend/tokendist/routes/sale.py
"""Sale API routes with owner enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DistributionError
from ..services import sale_service
from ..models.types import amount_str
from ..decorators import require_caller, require_owner


sale_bp = Blueprint("sale", __name__, url_prefix="/api/sale")


@sale_bp.get("/status")
def sale_status_route():
    """Current round, purchasing gate and per-round progress."""
    try:
        state = sale_service.get_sale_state()
        rounds = sale_service.list_rounds()
        return jsonify({
            "sale": state.to_dict(),
            "rounds": [r.to_dict() for r in rounds],
        }), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load sale status")
        return jsonify({"error": "Internal server error"}), 500


@sale_bp.get("/rounds")
def list_rounds_route():
    rounds = sale_service.list_rounds()
    return jsonify({"rounds": [r.to_dict() for r in rounds]}), 200


@sale_bp.get("/rounds/<int:round_index>")
def get_round_route(round_index: int):
    try:
        sale_round = sale_service.get_round(round_index)
        return jsonify({"round": sale_round.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code


@sale_bp.get("/rounds/<int:round_index>/accounts/<address>")
def get_round_account_route(round_index: int, address: str):
    """Bought, unlocked, vesting epoch and next unlock for one account."""
    try:
        summary = sale_service.account_summary(round_index, address)
        return jsonify({"account": summary}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load round account")
        return jsonify({"error": "Internal server error"}), 500


@sale_bp.post("/activate")
@require_caller
@require_owner
def activate_sale_route():
    """
    Re-arm purchasing for the current round.

    Requires: owner
    """
    try:
        state = sale_service.activate_sale(g.caller)
        return jsonify({"sale": state.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to activate sale")
        return jsonify({"error": "Internal server error"}), 500


@sale_bp.post("/pause")
@require_caller
@require_owner
def pause_sale_route():
    """
    Halt purchasing without closing the round.

    Requires: owner
    """
    try:
        state = sale_service.pause_sale(g.caller)
        return jsonify({"sale": state.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to pause sale")
        return jsonify({"error": "Internal server error"}), 500


@sale_bp.post("/rounds/<int:round_index>/whitelist")
@require_caller
@require_owner
def whitelist_route(round_index: int):
    """
    Whitelist addresses for a gated round (0-2).

    Requires: owner
    Body: {"addresses": ["0x..", ...]}
    """
    try:
        data = request.get_json(silent=True) or {}
        addresses = data.get("addresses")
        if addresses is None:
            return jsonify({"error": "addresses required"}), 400

        positions = sale_service.whitelist(g.caller, round_index, addresses)
        return jsonify({"accounts": [p.to_dict() for p in positions]}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to whitelist accounts")
        return jsonify({"error": "Internal server error"}), 500


@sale_bp.post("/purchase")
@require_caller
def purchase_route():
    """
    Buy tokens in the current round as the caller.

    Body: {"amount": <int|str>, "value": <int|str>}
    The amount is clipped to the round's remaining cap.
    """
    try:
        data = request.get_json(silent=True) or {}
        amount = data.get("amount")
        value = data.get("value")

        if amount is None or value is None:
            return jsonify({"error": "amount and value required"}), 400

        result = sale_service.purchase(g.caller, amount, value)
        return jsonify({"purchase": result.to_dict()}), 201
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to process purchase")
        return jsonify({"error": "Internal server error"}), 500


@sale_bp.post("/rounds/<int:round_index>/claim")
@require_caller
def claim_route(round_index: int):
    """Claim the caller's next vesting tranche for a closed round."""
    try:
        result = sale_service.claim(g.caller, round_index)
        return jsonify({"claim": result.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to claim sale tokens")
        return jsonify({"error": "Internal server error"}), 500


@sale_bp.get("/rounds/<int:round_index>/locked-balance")
@require_caller
def locked_balance_route(round_index: int):
    """Caller's bought minus unlocked for a gated round (0-2)."""
    try:
        locked = sale_service.locked_balance(g.caller, round_index)
        return jsonify({
            "account": g.caller,
            "round_index": round_index,
            "locked": amount_str(locked),
        }), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
