import pytest

from neigh.extensions import db
from neigh.models import Message, TaskAssignment
from neigh.services.assignment_service import AssignmentWorkflow
from neigh.services.notifications import ConversationNotifier

from conftest import make_conversation


def test_posts_system_message(assignment, conversation, contractor):
    before = conversation.updated_at
    msg = ConversationNotifier().notify(
        assignment.id, "Work started", "status-update", sender_id=contractor.id
    )
    assert msg is not None
    assert msg.is_system_message
    assert msg.conversation_id == conversation.id
    assert msg.sender_id == contractor.id
    assert msg.meta["event_type"] == "status-update"
    assert msg.meta["task_assignment_id"] == assignment.id
    assert msg.meta["task_name"] == "Fix the garden fence"
    assert db.session.get(type(conversation), conversation.id).updated_at >= before


def test_extra_metadata_is_merged(assignment, conversation):
    msg = ConversationNotifier().notify(
        assignment.id, "Invoice ready", "invoice-created", metadata={"invoice_number": "INV-1"}
    )
    assert msg.meta["invoice_number"] == "INV-1"
    assert msg.meta["event_type"] == "invoice-created"


def test_without_conversation_nothing_is_created(assignment):
    assert ConversationNotifier().notify(assignment.id, "hello") is None
    assert Message.query.count() == 0


def test_conversation_must_include_both_parties(assignment, task, client_user, other_contractor):
    make_conversation(task, client_user, other_contractor)
    assert ConversationNotifier().notify(assignment.id, "hello") is None
    assert Message.query.count() == 0


def test_missing_assignment(ctx):
    assert ConversationNotifier().notify(12345, "hello") is None


def test_unknown_event_type(assignment, conversation):
    with pytest.raises(ValueError):
        ConversationNotifier().notify(assignment.id, "hello", "party")


def test_task_archived_reaches_every_conversation(task, client_user, contractor, other_contractor):
    make_conversation(task, client_user, contractor)
    make_conversation(task, client_user, other_contractor)
    count = ConversationNotifier().notify_task_archived(task)
    assert count == 2
    messages = Message.query.all()
    assert len(messages) == 2
    assert all(m.meta["event_type"] == "task-archived" for m in messages)


def test_workflow_posts_into_task_conversation(login, assignment, conversation, contractor):
    login(contractor)
    result = AssignmentWorkflow(ConversationNotifier()).update_task_assignment(assignment.id, "COMPLETED")
    assert result["success"]
    msg = Message.query.one()
    assert msg.is_system_message
    assert msg.meta["task_assignment_id"] == db.session.get(TaskAssignment, assignment.id).id
    assert "marked the task" in msg.content
