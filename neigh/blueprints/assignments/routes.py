# neigh/blueprints/assignments/routes.py
from flask_login import current_user, login_required

from ...errors import ok
from ...services.assignment_service import list_for_client, list_for_contractor
from ..utils import payload, respond, workflow
from . import assignments_bp


@assignments_bp.route("/", methods=["GET"])
@login_required
def my_assignments():
    return respond(ok("Task assignments", {
        "as_client": list_for_client(current_user.id),
        "as_contractor": list_for_contractor(current_user.id),
    }))


@assignments_bp.route("/", methods=["POST"])
@login_required
def create_assignment():
    result = workflow().create_task_assignment(payload())
    return respond(result, 201 if result["success"] else None)


@assignments_bp.route("/<int:assignment_id>", methods=["GET"])
@login_required
def assignment_detail(assignment_id):
    return respond(workflow().get_task_assignment(assignment_id))


@assignments_bp.route("/<int:assignment_id>", methods=["DELETE"])
@login_required
def delete_assignment(assignment_id):
    return respond(workflow().delete_task_assignment(assignment_id))


# -----------------
# Status transitions
# -----------------

@assignments_bp.route("/<int:assignment_id>/status", methods=["PATCH", "POST"])
@login_required
def update_status(assignment_id):
    return respond(workflow().update_task_assignment(assignment_id, payload().get("status")))


@assignments_bp.route("/<int:assignment_id>/accept", methods=["POST"])
@login_required
def accept(assignment_id):
    return respond(workflow().accept_task_assignment(assignment_id))


# -----------------
# Reviews
# -----------------

@assignments_bp.route("/<int:assignment_id>/review", methods=["POST"])
@login_required
def review_contractor(assignment_id):
    data = payload()
    return respond(workflow().mark_task_as_reviewed(
        assignment_id, data.get("rating"), data.get("feedback", "")
    ))


@assignments_bp.route("/<int:assignment_id>/client-review", methods=["POST"])
@login_required
def review_client(assignment_id):
    data = payload()
    return respond(workflow().mark_client_as_reviewed(
        assignment_id, data.get("rating"), data.get("feedback", "")
    ))
