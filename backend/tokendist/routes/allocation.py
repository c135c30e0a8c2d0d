# Overview: Flask API routes for allocation groups; parses input and returns JSON responses.

# backend/tokendist/routes/allocation.py
"""Allocation API routes with owner and sale-identity enforcement"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import DistributionError, UnauthorizedError
from ..services import allocation_service, permission_service
from ..decorators import require_caller, require_owner


allocation_bp = Blueprint("allocation", __name__, url_prefix="/api/allocation")


@allocation_bp.get("/status")
def allocation_status_route():
    """TGE / mainnet anchors, registered sale identity and every group."""
    try:
        state = allocation_service.get_allocation_state()
        groups = allocation_service.list_groups()
        return jsonify({
            "allocation": state.to_dict(),
            "groups": [grp.to_dict() for grp in groups],
        }), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load allocation status")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.get("/groups")
def list_groups_route():
    groups = allocation_service.list_groups()
    return jsonify({"groups": [grp.to_dict() for grp in groups]}), 200


@allocation_bp.get("/groups/<group>")
def get_group_route(group: str):
    try:
        row = allocation_service.get_group(group)
        return jsonify({"group": row.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code


@allocation_bp.get("/groups/<group>/participants")
def list_participants_route(group: str):
    """Address list in slot order; removed slots are null."""
    try:
        row = allocation_service.get_group(group)
        slots = allocation_service.list_slots(row.group_index)
        return jsonify({"group": row.code, "slots": slots}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code


@allocation_bp.get("/groups/<group>/participants/<address>")
def get_participant_route(group: str, address: str):
    try:
        summary = allocation_service.participant_summary(group, address)
        return jsonify({"participant": summary}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load participant")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.post("/groups/<group>/participants")
@require_caller
@require_owner
def add_participants_route(group: str):
    """
    Register allocations (before TGE only).

    Requires: owner
    Body: {"addresses": [...], "balances": [...]}
    """
    try:
        data = request.get_json(silent=True) or {}
        addresses = data.get("addresses")
        balances = data.get("balances")

        if addresses is None or balances is None:
            return jsonify({"error": "addresses and balances required"}), 400

        added = allocation_service.add_participants(g.caller, group, addresses, balances)
        return jsonify({"added": [p.to_dict() for p in added]}), 201
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to add participants")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.delete("/groups/<group>/participants/<address>")
@require_caller
@require_owner
def remove_participant_route(group: str, address: str):
    """
    Remove a participant (before TGE only); leaves a hole in the slot list.

    Requires: owner
    """
    try:
        participant = allocation_service.remove_participant(g.caller, group, address)
        return jsonify({"participant": participant.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to remove participant")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.post("/tge")
@require_caller
@require_owner
def set_tge_route():
    """Requires: owner. One-shot."""
    try:
        state = allocation_service.set_tge_passed(g.caller)
        return jsonify({"allocation": state.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set TGE")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.post("/mainnet")
@require_caller
@require_owner
def set_mainnet_route():
    """Requires: owner. One-shot, after TGE."""
    try:
        state = allocation_service.set_mainnet_launched(g.caller)
        return jsonify({"allocation": state.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set mainnet launch")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.post("/token-sale-address")
@require_caller
@require_owner
def set_token_sale_address_route():
    """
    Register the identity allowed to signal the end of the sale.

    Requires: owner
    Body: {"address": "0x.."}
    """
    try:
        data = request.get_json(silent=True) or {}
        address = data.get("address")
        if not address:
            return jsonify({"error": "address required"}), 400

        state = allocation_service.set_token_sale_address(g.caller, address)
        return jsonify({"allocation": state.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set token sale address")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.post("/groups/<group>/distribute")
@require_caller
def distribute_route(group: str):
    """Push the group's current epoch to every live member. Anyone may call."""
    try:
        result = allocation_service.distribute(group)
        return jsonify({"distribution": result.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to distribute allocation")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.post("/groups/<group>/claim")
@require_caller
def claim_route(group: str):
    """Claim the caller's next tranche."""
    try:
        result = allocation_service.claim(g.caller, group)
        return jsonify({"claim": result.to_dict()}), 200
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to claim allocation")
        return jsonify({"error": "Internal server error"}), 500


@allocation_bp.post("/end-token-sale")
@require_caller
def end_token_sale_route():
    """Informational end-of-sale signal; only the registered sale identity may call."""
    try:
        allocation_service.end_token_sale(g.caller)
        return jsonify({"sale_ended": True}), 200
    except UnauthorizedError as e:
        permission_service.log_security_event(
            caller=g.caller,
            event_type="SALE_IDENTITY_DENIED",
            success=False,
            resource=request.path,
            action=request.method,
            reason=str(e),
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify(e.to_dict()), e.status_code
    except DistributionError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to end token sale")
        return jsonify({"error": "Internal server error"}), 500
