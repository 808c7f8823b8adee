# neigh/services/task_service.py
from __future__ import annotations

import logging
from datetime import datetime

from flask import current_app

from ..errors import (
    ConflictError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
    fail,
    first_form_error,
    format_error,
    ok,
)
from ..extensions import db
from ..forms import TaskForm
from ..models.task import Category, Task, TaskStatus
from ..security import require_user

log = logging.getLogger(__name__)

DEFAULT_CATEGORIES = (
    "Cleaning",
    "Gardening",
    "Moving",
    "Repairs",
    "Pet Care",
    "Tutoring",
)


def create_task(data: dict) -> dict:
    try:
        user = require_user()
        form = TaskForm(data=data or {})
        if not form.validate():
            raise ValidationError(first_form_error(form.errors))

        category_id = form.category_id.data
        if category_id and db.session.get(Category, category_id) is None:
            raise NotFoundError("Category not found")

        task = Task(
            name=form.name.data.strip(),
            description=form.description.data.strip(),
            price=form.price.data,
            images=[img for img in form.images.data if img],
            category_id=category_id or None,
            created_by_id=user.id,
            status=TaskStatus.OPEN,
        )
        db.session.add(task)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))

    log.info("Task %s created by user %s", task.id, user.id)
    return ok("Task created successfully", task)


def get_task(task_id: int) -> Task | None:
    return db.session.get(Task, task_id)


def list_open_tasks(page: int = 1, query: str | None = None, category: str | None = None,
                    per_page: int | None = None):
    per_page = per_page or current_app.config.get("PAGE_SIZE", 10)
    qry = Task.query.filter(Task.is_archived.is_(False), Task.status == TaskStatus.OPEN)
    if query and query != "all":
        like = f"%{query.strip()}%"
        qry = qry.filter(Task.name.ilike(like) | Task.description.ilike(like))
    if category and category != "all":
        qry = qry.join(Category).filter(Category.name == category)
    return (qry.order_by(Task.created_at.desc(), Task.id.desc())
            .paginate(page=page, per_page=per_page, error_out=False))


def archive_task(task_id: int, notifier=None) -> dict:
    """Soft-delete a task and tell everyone who was talking about it."""
    try:
        user = require_user()
        task = db.session.get(Task, task_id)
        if task is None:
            raise NotFoundError("Task not found")
        if task.created_by_id != user.id and not user.is_admin:
            raise UnauthorizedError("Only the task owner can archive this task")
        if task.is_archived:
            raise ConflictError("Task is already archived")

        task.is_archived = True
        task.archived_at = datetime.utcnow()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        return fail(format_error(e))

    if notifier is not None:
        try:
            count = notifier.notify_task_archived(task)
            log.info("Task %s archived; %s conversation(s) notified", task.id, count)
        except Exception as e:
            db.session.rollback()
            log.warning("task-archived notification failed for task %s: %s", task.id, e)
    return ok("Task archived successfully", task)


def list_categories() -> list[Category]:
    return Category.query.order_by(Category.name).all()


def seed_categories(names=DEFAULT_CATEGORIES) -> int:
    existing = {c.name for c in Category.query.all()}
    added = 0
    for name in names:
        if name not in existing:
            db.session.add(Category(name=name))
            added += 1
    db.session.commit()
    return added
