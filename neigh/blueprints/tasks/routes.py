# neigh/blueprints/tasks/routes.py
from flask import abort, request
from flask_login import login_required

from ...errors import ok
from ...services import chat_service, task_service
from ..utils import notifier, page_arg, payload, respond
from . import tasks_bp


@tasks_bp.route("/", methods=["GET"])
def list_tasks():
    page = task_service.list_open_tasks(
        page=page_arg(),
        query=request.args.get("q"),
        category=request.args.get("category"),
    )
    return respond(ok("Open tasks", page))


@tasks_bp.route("/", methods=["POST"])
@login_required
def create_task():
    result = task_service.create_task(payload())
    return respond(result, 201 if result["success"] else None)


@tasks_bp.route("/categories", methods=["GET"])
def categories():
    return respond(ok("Categories", task_service.list_categories()))


@tasks_bp.route("/<int:task_id>", methods=["GET"])
def task_detail(task_id):
    task = task_service.get_task(task_id)
    if task is None or task.is_archived:
        abort(404)
    return respond(ok("Task found", task))


@tasks_bp.route("/<int:task_id>/archive", methods=["POST"])
@login_required
def archive(task_id):
    return respond(task_service.archive_task(task_id, notifier=notifier()))


@tasks_bp.route("/<int:task_id>/contact", methods=["POST"])
@login_required
def contact_owner(task_id):
    return respond(chat_service.start_task_conversation(task_id))
