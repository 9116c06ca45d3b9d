# market_app/views_messages.py
import logging

from django.contrib.auth.models import User
from django.db import DatabaseError, transaction
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_POST

from .decorators import api_login_required
from .models import Conversation, Listing, Message
from .payloads import display_name, message_payload
from .utils.coercion import int_or_none, text, uuid_or_none
from .views import parse_json_body

logger = logging.getLogger(__name__)


def _listing_summary(listing):
    if listing is None:
        return None
    return {"id": listing.id, "slug": listing.slug, "title": listing.display_title}


@require_GET
@api_login_required
def inbox(request):
    """API endpoint listing the caller's conversations, newest activity first"""
    conversations = (
        Conversation.objects.filter(participants=request.user)
        .select_related("listing")
        .prefetch_related("participants__profiles")
    )

    conversations_data = []
    for conv in conversations:
        other = next((p for p in conv.participants.all() if p.id != request.user.id), None)
        if other is None:
            logger.warning(f"Conversation {conv.id} has no other participant for user {request.user.id}")
            continue

        latest = conv.get_latest_message()
        if latest is None:
            continue

        conversations_data.append(
            {
                "id": conv.id,
                "otherUser": {"id": other.id, "name": display_name(other)},
                "listing": _listing_summary(conv.listing),
                "lastMessage": {
                    "body": latest.body,
                    "createdAt": latest.created_at,
                    "isFromMe": latest.sender_id == request.user.id,
                },
                "unreadCount": conv.unread_count_for(request.user),
                "updatedAt": conv.updated_at,
            }
        )

    conversations_data.sort(key=lambda c: c["lastMessage"]["createdAt"], reverse=True)
    return JsonResponse({"conversations": conversations_data})


@require_GET
@api_login_required
def conversation_detail(request, conversation_id):
    """Messages of one conversation. Messages addressed to the caller are marked read."""
    conversation = Conversation.objects.select_related("listing").filter(id=conversation_id).first()
    if conversation is None:
        return JsonResponse({"error": "Conversation not found"}, status=404)
    if not conversation.participants.filter(id=request.user.id).exists():
        logger.warning(f"User {request.user.id} is not a participant of conversation {conversation_id}")
        return JsonResponse({"error": "Forbidden"}, status=403)

    conversation.messages.filter(receiver=request.user, read_at__isnull=True).update(read_at=timezone.now())

    other = conversation.get_other_participant(request.user)
    messages_qs = conversation.messages.select_related("sender").prefetch_related("sender__profiles")
    return JsonResponse(
        {
            "conversation": {
                "id": conversation.id,
                "otherUser": {"id": other.id, "name": display_name(other)} if other else None,
                "listing": _listing_summary(conversation.listing),
            },
            "messages": [message_payload(m, request.user) for m in messages_qs],
        }
    )


def _find_listing(value):
    listing_id = uuid_or_none(value)
    if listing_id is None:
        return None
    return Listing.objects.filter(id=listing_id).first()


@require_POST
@api_login_required
def send_message(request):
    """
    Send a message. Replies name the conversation; first contact names the
    receiver and optionally the listing it is about.
    """
    body = parse_json_body(request)
    if body is None:
        return JsonResponse({"error": "BAD_JSON"}, status=400)

    content = text(body.get("message")).strip()
    if not content:
        return JsonResponse({"error": "Message is required"}, status=400)

    conversation = None
    conversation_id = int_or_none(body.get("conversationId"))
    if conversation_id is not None:
        conversation = Conversation.objects.filter(id=conversation_id).first()
        if conversation is None:
            return JsonResponse({"error": "Conversation not found"}, status=404)
        if not conversation.participants.filter(id=request.user.id).exists():
            return JsonResponse({"error": "Forbidden"}, status=403)
        receiver = conversation.get_other_participant(request.user)
    else:
        receiver_id = int_or_none(body.get("receiverId"))
        if receiver_id is None:
            return JsonResponse({"error": "Receiver is required"}, status=400)
        if receiver_id == request.user.id:
            return JsonResponse({"error": "Cannot message yourself"}, status=400)
        receiver = User.objects.filter(id=receiver_id).first()

    if receiver is None:
        return JsonResponse({"error": "Receiver not found"}, status=404)

    listing = None
    if conversation is None and body.get("listingId"):
        listing = _find_listing(body["listingId"])
        if listing is None:
            return JsonResponse({"error": "Listing not found"}, status=404)

    try:
        with transaction.atomic():
            if conversation is None:
                conversation, _created = Conversation.get_or_create_conversation(
                    request.user, receiver, listing
                )
            message = Message.objects.create(
                conversation=conversation,
                sender=request.user,
                receiver=receiver,
                body=content,
            )
            # Update conversation's updated_at timestamp
            conversation.save()
    except DatabaseError as e:
        logger.error(f"Error sending message from user {request.user.id}: {str(e)}", exc_info=True)
        return JsonResponse({"error": "Failed to send message"}, status=500)

    logger.info(f"Message {message.id} created in conversation {conversation.id}")
    return JsonResponse(
        {
            "success": True,
            "conversationId": conversation.id,
            "message": {
                "id": message.id,
                "body": message.body,
                "createdAt": message.created_at,
                "isFromMe": True,
            },
        }
    )


@require_GET
@api_login_required
def unread_count(request):
    """API endpoint to get the total unread messages count for the logged-in user"""
    count = Message.objects.filter(receiver=request.user, read_at__isnull=True).count()
    return JsonResponse({"unreadCount": count})
