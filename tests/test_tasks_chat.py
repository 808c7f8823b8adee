from decimal import Decimal

from neigh.extensions import db
from neigh.models import AssignmentStatus, Category, Message, Task
from neigh.services import chat_service, task_service, user_service
from neigh.services.assignment_service import AssignmentWorkflow

from conftest import make_assignment


# -----------------
# Tasks
# -----------------

def test_create_task(login, client_user):
    login(client_user)
    task_service.seed_categories(["Gardening"])
    category = Category.query.one()
    result = task_service.create_task({
        "name": "Mow the lawn",
        "description": "Front and back, roughly 200 square metres.",
        "price": "45.50",
        "category_id": category.id,
    })
    assert result["success"], result["message"]
    task = result["data"]
    assert task.price == Decimal("45.50")
    assert task.created_by_id == client_user.id
    assert task.category.name == "Gardening"


def test_create_task_unknown_category(login, client_user):
    login(client_user)
    result = task_service.create_task({
        "name": "Mow the lawn",
        "description": "Front and back, roughly 200 square metres.",
        "price": "45.50",
        "category_id": 77,
    })
    assert result == {"success": False, "message": "Category not found"}
    assert Task.query.count() == 0


def test_seed_categories_is_idempotent(ctx):
    assert task_service.seed_categories() == len(task_service.DEFAULT_CATEGORIES)
    assert task_service.seed_categories() == 0


def test_archive_task_notifies(login, notifier, task, client_user):
    login(client_user)
    result = task_service.archive_task(task.id, notifier=notifier)
    assert result["success"]
    assert db.session.get(Task, task.id).is_archived
    assert notifier.calls == [{"task_id": task.id, "event_type": "task-archived"}]

    again = task_service.archive_task(task.id, notifier=notifier)
    assert again == {"success": False, "message": "Task is already archived"}
    assert task_service.list_open_tasks().total == 0


def test_only_owner_archives(login, notifier, task, contractor):
    login(contractor)
    result = task_service.archive_task(task.id, notifier=notifier)
    assert result == {"success": False, "message": "Only the task owner can archive this task"}
    assert notifier.calls == []


def test_search_open_tasks(ctx, task):
    assert task_service.list_open_tasks(query="fence").total == 1
    assert task_service.list_open_tasks(query="piano").total == 0


def test_free_task_is_rejected(login, client_user):
    login(client_user)
    result = task_service.create_task({
        "name": "Borrow a ladder",
        "description": "Just for an afternoon, will return it.",
        "price": "0.00",
    })
    assert result == {"success": False, "message": "Price must be greater than 0"}
    assert Task.query.count() == 0


# -----------------
# Conversations
# -----------------

def test_contact_owner_reuses_conversation(login, task, contractor):
    login(contractor)
    first = chat_service.start_task_conversation(task.id)
    second = chat_service.start_task_conversation(task.id)
    assert first["message"] == "Conversation started"
    assert second["message"] == "Conversation found"
    assert first["data"].id == second["data"].id


def test_owner_cannot_contact_self(login, task, client_user):
    login(client_user)
    result = chat_service.start_task_conversation(task.id)
    assert result == {"success": False, "message": "You cannot start a conversation about your own task"}


def test_messages_and_unread_counts(login, conversation, client_user, contractor):
    login(contractor)
    assert chat_service.send_message(conversation.id, {"content": "When can I come by?"})["success"]
    assert chat_service.send_message(conversation.id, {"content": "   "})["success"] is False

    login(client_user)
    assert chat_service.get_unread_count() == 1
    assert [c.id for c in chat_service.get_user_conversations()] == [conversation.id]

    result = chat_service.mark_conversation_read(conversation.id)
    assert result["data"] == 1
    assert chat_service.get_unread_count() == 0
    assert Message.query.one().is_read


def test_outsider_cannot_post(login, conversation, other_contractor):
    login(other_contractor)
    result = chat_service.send_message(conversation.id, {"content": "hi"})
    assert result == {"success": False, "message": "You are not part of this conversation"}


# -----------------
# Users
# -----------------

def test_update_payment_method(login, client_user):
    login(client_user)
    assert user_service.update_user_payment_method("cod")["success"]
    assert client_user.payment_method == "COD"
    assert user_service.update_user_payment_method("cheque")["success"] is False


def test_user_ratings(login, notifier, task, client_user, contractor):
    assignment = make_assignment(task, client_user, contractor, AssignmentStatus.COMPLETED)
    login(client_user)
    AssignmentWorkflow(notifier).mark_task_as_reviewed(assignment.id, 4, "Tidy work")

    ratings = user_service.get_user_ratings(contractor.id)
    assert ratings["contractor_rating"] == "4.00"
    assert ratings["num_reviews"] == 1
    assert len(ratings["as_contractor"]) == 1
    assert ratings["as_client"] == []
