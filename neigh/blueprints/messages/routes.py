# neigh/blueprints/messages/routes.py
from flask_login import login_required

from ...errors import ok
from ...services import chat_service
from ..utils import payload, respond
from . import messages_bp


@messages_bp.route("/conversations", methods=["GET"])
@login_required
def conversations():
    return respond(ok("Conversations", chat_service.get_user_conversations()))


@messages_bp.route("/conversations/<int:conversation_id>", methods=["GET"])
@login_required
def conversation_detail(conversation_id):
    conv = chat_service.get_conversation(conversation_id)
    return respond(ok("Conversation", conv.to_dict(with_messages=True)))


@messages_bp.route("/conversations/<int:conversation_id>", methods=["POST"])
@login_required
def send(conversation_id):
    result = chat_service.send_message(conversation_id, payload())
    return respond(result, 201 if result["success"] else None)


@messages_bp.route("/conversations/<int:conversation_id>/read", methods=["POST"])
@login_required
def mark_read(conversation_id):
    return respond(chat_service.mark_conversation_read(conversation_id))


@messages_bp.route("/unread", methods=["GET"])
@login_required
def unread():
    return respond(ok("Unread messages", {"count": chat_service.get_unread_count()}))
