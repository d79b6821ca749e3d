"""
Messaging routes for the Campus Portal
"""

from flask import Blueprint, request

from routes.auth import login_required, current_user
from services.message_service import MessageService
from utils.db_helpers import get_pagination_args
from utils.errors import ValidationError
from utils.responses import arg_bool, get_json_body, success_response
from utils.validators import PayloadValidator

messages_bp = Blueprint('messages', __name__, url_prefix='/api/messages')

@messages_bp.route('')
@login_required()
def list_messages():
    """Inbox and outbox, newest first"""
    box = request.args.get('type')
    if box and box not in ('sent', 'received'):
        raise ValidationError("Type must be 'sent' or 'received'")

    page, per_page = get_pagination_args()
    pagination, unread = MessageService.list_messages(
        current_user().id, box=box, is_read=arg_bool('is_read'), page=page, per_page=per_page,
    )
    return success_response([message.to_dict() for message in pagination.items],
                            pagination=pagination, unread_count=unread)

@messages_bp.route('', methods=['POST'])
@login_required()
def send_message():
    data = (PayloadValidator(get_json_body())
            .integer('recipient_id', min_value=1, label='Recipient')
            .string('subject', required=False, max_length=200)
            .string('content', min_length=1, max_length=10000)
            .validate())
    message = MessageService.send(current_user(), data)
    return success_response(message.to_dict(), "Message sent successfully", status=201)

@messages_bp.route('/conversations')
@login_required()
def conversations():
    return success_response(MessageService.conversations(current_user().id))

@messages_bp.route('/conversations/<int:user_id>')
@login_required()
def conversation_thread(user_id):
    other, messages = MessageService.thread(current_user().id, user_id)
    return success_response({
        'user': other.to_summary(),
        'messages': [message.to_dict() for message in messages],
    })

@messages_bp.route('/<int:message_id>')
@login_required()
def get_message(message_id):
    return success_response(MessageService.open_message(message_id, current_user().id).to_dict())

@messages_bp.route('/<int:message_id>/read', methods=['PUT'])
@login_required()
def mark_read(message_id):
    message = MessageService.mark_read(message_id, current_user().id)
    return success_response(message.to_dict(), "Message marked as read")

@messages_bp.route('/<int:message_id>', methods=['DELETE'])
@login_required()
def delete_message(message_id):
    MessageService.delete(message_id, current_user().id)
    return success_response(None, "Message deleted successfully")
