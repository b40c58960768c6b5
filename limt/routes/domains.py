"""Custom domain API endpoints with DNS verification."""

from flask import Blueprint, current_app, request

from ..actions.domains import DomainService
from ..errors import result_response

domains_bp = Blueprint("domains", __name__)


def _service() -> DomainService:
    return current_app.extensions["limt.domains"]


@domains_bp.route("", methods=["GET"])
def list_domains():
    """List an organization's domains.

    Query params:
        organization_id: Organization to list (required)
    """
    organization_id = request.args.get("organization_id", type=int)
    result = _service().list_domains({"organization_id": organization_id})
    return result_response(result)


@domains_bp.route("", methods=["POST"])
def create_domain():
    """Add a custom domain.

    Request body:
        organization_id: Owning organization
        name: Domain name, e.g. "go.acme.com"

    Returns:
        The domain with its verification token and DNS instructions.
    """
    data = request.get_json(silent=True) or {}
    result = _service().create_domain(data)
    return result_response(result, success_status=201)


@domains_bp.route("/<int:domain_id>", methods=["GET"])
def get_domain(domain_id: int):
    return result_response(_service().get_domain(domain_id))


@domains_bp.route("/<int:domain_id>/verify", methods=["POST"])
def verify_domain(domain_id: int):
    """Run one DNS verification attempt."""
    return result_response(_service().verify_domain(domain_id))


@domains_bp.route("/<int:domain_id>", methods=["DELETE"])
def delete_domain(domain_id: int):
    return result_response(_service().delete_domain(domain_id))
