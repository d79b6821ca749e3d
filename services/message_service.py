"""
Messaging service for the Campus Portal
Direct messages between users with per-side soft deletion
"""

import logging
from datetime import datetime

from sqlalchemy import and_, or_

from database import db
from models.communication import Message
from models.user import User
from utils.db_helpers import get_or_404, paginate_query, transaction
from utils.errors import ForbiddenError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

class MessageService:
    """Inbox, outbox and conversation threads"""

    @staticmethod
    def _visible_to(user_id):
        return or_(
            and_(Message.sender_id == user_id, Message.deleted_by_sender.is_(False)),
            and_(Message.recipient_id == user_id, Message.deleted_by_recipient.is_(False)),
        )

    @staticmethod
    def unread_count(user_id):
        return Message.query.filter_by(recipient_id=user_id, is_read=False, deleted_by_recipient=False).count()

    @staticmethod
    def list_messages(user_id, box=None, is_read=None, page=1, per_page=20):
        if box == 'sent':
            query = Message.query.filter_by(sender_id=user_id, deleted_by_sender=False)
        elif box == 'received':
            query = Message.query.filter_by(recipient_id=user_id, deleted_by_recipient=False)
        else:
            query = Message.query.filter(MessageService._visible_to(user_id))
        if is_read is not None:
            query = query.filter(Message.is_read.is_(is_read))
        pagination = paginate_query(query.order_by(Message.created_at.desc(), Message.id.desc()), page, per_page)
        return pagination, MessageService.unread_count(user_id)

    @staticmethod
    def send(sender, data):
        recipient_id = data['recipient_id']
        if recipient_id == sender.id:
            raise ValidationError("You cannot send a message to yourself")
        recipient = db.session.get(User, recipient_id)
        if recipient is None or not recipient.is_active:
            raise NotFoundError("Recipient not found")

        message = Message(
            sender_id=sender.id,
            recipient_id=recipient.id,
            subject=data.get('subject'),
            content=data['content'],
        )
        with transaction():
            db.session.add(message)
        logger.info("Message %s sent from %s to %s", message.id, sender.id, recipient.id)
        return message

    @staticmethod
    def _participant_message(message_id, user_id):
        message = get_or_404(Message, message_id, "Message not found")
        if user_id not in (message.sender_id, message.recipient_id):
            raise ForbiddenError("You do not have access to this message")
        if (user_id == message.sender_id and message.deleted_by_sender) or \
                (user_id == message.recipient_id and message.deleted_by_recipient):
            raise NotFoundError("Message not found")
        return message

    @staticmethod
    def open_message(message_id, user_id):
        """Fetch a message; opening it as the recipient marks it read"""
        message = MessageService._participant_message(message_id, user_id)
        if message.recipient_id == user_id and not message.is_read:
            message.mark_read()
            db.session.commit()
        return message

    @staticmethod
    def mark_read(message_id, user_id):
        message = MessageService._participant_message(message_id, user_id)
        if message.recipient_id != user_id:
            raise ForbiddenError("Only the recipient can mark a message as read")
        message.mark_read()
        db.session.commit()
        return message

    @staticmethod
    def delete(message_id, user_id):
        message = MessageService._participant_message(message_id, user_id)
        if message.sender_id == user_id:
            message.deleted_by_sender = True
        if message.recipient_id == user_id:
            message.deleted_by_recipient = True
        db.session.commit()

    @staticmethod
    def conversations(user_id):
        """One entry per counterpart with the latest message and unread count"""
        messages = (Message.query
                    .filter(MessageService._visible_to(user_id))
                    .order_by(Message.created_at.desc(), Message.id.desc())
                    .all())
        threads = {}
        for message in messages:
            other_id = message.recipient_id if message.sender_id == user_id else message.sender_id
            thread = threads.get(other_id)
            if thread is None:
                other = message.recipient if message.sender_id == user_id else message.sender
                thread = threads[other_id] = {
                    'user': other.to_summary() if other else None,
                    'last_message': message.to_dict(),
                    'unread_count': 0,
                    'message_count': 0,
                }
            thread['message_count'] += 1
            if message.recipient_id == user_id and not message.is_read:
                thread['unread_count'] += 1
        return list(threads.values())

    @staticmethod
    def thread(user_id, other_id):
        """Messages with one counterpart in chronological order; received ones are marked read"""
        other = db.session.get(User, other_id)
        if other is None:
            raise NotFoundError("User not found")

        messages = (Message.query
                    .filter(MessageService._visible_to(user_id))
                    .filter(or_(
                        and_(Message.sender_id == user_id, Message.recipient_id == other_id),
                        and_(Message.sender_id == other_id, Message.recipient_id == user_id),
                    ))
                    .order_by(Message.created_at.asc(), Message.id.asc())
                    .all())

        now = datetime.utcnow()
        changed = False
        for message in messages:
            if message.recipient_id == user_id and not message.is_read:
                message.is_read = True
                message.read_at = now
                changed = True
        if changed:
            db.session.commit()
        return other, messages
