"""
Tests for chat models.
"""

from payments.tests.factories import MessageFactory


class TestMessage:
    def test_paid_message(self, db):
        assert MessageFactory().is_paid is True

    def test_free_message(self, db):
        assert MessageFactory(ppv_price=None).is_paid is False


class TestConversation:
    def test_participants(self, user, creator):
        message = MessageFactory(conversation__user=user, conversation__creator=creator)
        conversation = message.conversation

        assert conversation.has_participant(user.id)
        assert conversation.has_participant(creator.user_id)
        assert message.sender_id == creator.user_id

    def test_outsider(self, db, user):
        assert not MessageFactory().conversation.has_participant(user.id)
