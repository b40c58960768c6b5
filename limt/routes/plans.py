"""Plan catalog and plan guard API endpoints."""

from flask import Blueprint, current_app, jsonify, request

from ..actions.plans import PlanService
from ..errors import result_response
from ..plans import list_plans_in_order

plans_bp = Blueprint("plans", __name__)


def _service() -> PlanService:
    return current_app.extensions["limt.plans"]


@plans_bp.route("", methods=["GET"])
def list_plans():
    """Public plan catalog, lowest tier first.

    Returns:
        JSON list of plans with limits, prices and features.
    """
    return jsonify({"plans": [plan.to_dict() for plan in list_plans_in_order()]})


@plans_bp.route("/organizations/<int:organization_id>/guard", methods=["GET"])
def get_plan_guard_state(organization_id: int):
    """Serialized plan guard (plan id and usage) for an organization."""
    result = _service().get_plan_guard_state({"organization_id": organization_id})
    return result_response(result)


@plans_bp.route("/organizations/<int:organization_id>/usage", methods=["GET"])
def get_organization_usage(organization_id: int):
    result = _service().get_organization_usage({"organization_id": organization_id})
    return result_response(result)


@plans_bp.route("/organizations/<int:organization_id>/check", methods=["POST"])
def check_plan_limit(organization_id: int):
    """Check whether more of a resource can be created.

    Request body:
        resource: Resource name, e.g. "links"
        count: How many would be created (default 1)
    """
    data = request.get_json(silent=True) or {}
    result = _service().check_plan_limit({**data, "organization_id": organization_id})
    return result_response(result)


@plans_bp.route("/organizations/<int:organization_id>", methods=["PUT"])
def change_plan(organization_id: int):
    """Move an organization to another plan. Owners only.

    Request body:
        plan_id: Target plan
    """
    data = request.get_json(silent=True) or {}
    result = _service().change_plan({**data, "organization_id": organization_id})
    return result_response(result)
