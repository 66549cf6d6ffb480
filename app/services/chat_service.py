"""Chat service layer: conversation assembly and the send interaction.

Handles:
- Building the completion request from a room prompt and a user message
- Calling the completion provider and extracting its reply
- Persisting the user message and the assistant reply
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
import logging

from openai import OpenAI, APIError
from sqlmodel import Session

from app.config import settings
from app.errors import CompletionProviderFailure, EmptyCompletion, StorageFailure
from app.models import Message
from app.services.identity_service import IdentityService
from app.services.message_service import MessageService
from app.services.room_service import RoomService

logger = logging.getLogger(__name__)


class ConversationAssembler:
    """
    Turns a room prompt plus a user message into a completion request,
    and the provider's answer into storable message text.

    The provider is called once per reply. No retries.
    """

    def __init__(
        self,
        client: Optional[OpenAI] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize assembler. The OpenAI client is created on first use if not given."""
        self._client = client
        self.model = model or settings.OPENAI_MODEL
        self.timeout = timeout if timeout is not None else settings.OPENAI_TIMEOUT

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            self._client = OpenAI(api_key=settings.require("OPENAI_API_KEY"))
        return self._client

    @staticmethod
    def build_request(prompt: Optional[str], user_message: str) -> list[Dict[str, str]]:
        """
        Build the ordered instruction list.

        Always exactly two entries: the room prompt as the system instruction
        (empty string when the room has none) followed by the user message.
        """
        return [
            {"role": "system", "content": prompt or ""},
            {"role": "user", "content": user_message},
        ]

    @staticmethod
    def extract_reply(response: Any) -> str:
        """
        Return the content of the first choice.

        Raises:
            EmptyCompletion: If the provider returned zero choices
            CompletionProviderFailure: If the payload has no usable shape
        """
        choices = getattr(response, "choices", None)
        if choices is None:
            raise CompletionProviderFailure("Malformed completion payload: no choices field")
        if len(choices) == 0:
            raise EmptyCompletion()

        try:
            content = choices[0].message.content
        except AttributeError as e:
            raise CompletionProviderFailure(f"Malformed completion payload: {e}") from e
        return content or ""

    def generate_reply(self, prompt: Optional[str], user_message: str) -> str:
        """Ask the completion provider for a reply to user_message under prompt."""
        return self.complete(self.build_request(prompt, user_message))

    def complete(self, messages: list[Dict[str, str]]) -> str:
        """
        Send a built instruction list to the provider and extract the reply.

        Raises:
            CompletionProviderFailure: Network, timeout or non-2xx status
            EmptyCompletion: If the provider returned zero choices
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                timeout=self.timeout,
            )
        except APIError as e:
            raise CompletionProviderFailure(str(e)) from e

        return self.extract_reply(response)


class SendState(str, Enum):
    """Progress of a single send interaction."""
    IDLE = "idle"
    USER_MESSAGE_PERSISTED = "user_message_persisted"
    REQUEST_BUILT = "request_built"
    AWAITING_PROVIDER = "awaiting_provider"
    REPLY_PERSISTED = "reply_persisted"
    REPLY_FAILED = "reply_failed"


@dataclass
class SendOutcome:
    """
    Result of a send.

    user_message is always persisted when an outcome is returned.
    reply is None and error is set when state is REPLY_FAILED.
    """
    state: SendState
    user_message: Message
    reply: Optional[Message] = None
    error: Optional[str] = None

    @property
    def reply_failed(self) -> bool:
        return self.state == SendState.REPLY_FAILED


class ChatService:
    """Service layer for the send interaction."""

    def __init__(
        self,
        identity: Optional[IdentityService] = None,
        rooms: Optional[RoomService] = None,
        messages: Optional[MessageService] = None,
        assembler: Optional[ConversationAssembler] = None,
        assistant_user_id: Optional[int] = None,
    ):
        """Initialize chat service."""
        self.identity = identity or IdentityService()
        self.rooms = rooms or RoomService()
        self.messages = messages or MessageService()
        self.assembler = assembler or ConversationAssembler()
        self.assistant_user_id = (
            assistant_user_id if assistant_user_id is not None else settings.ASSISTANT_USER_ID
        )

    def send_message(
        self,
        session: Session,
        access_token: str,
        room_id: int,
        message_text: str,
    ) -> SendOutcome:
        """
        Persist a user message and the assistant's reply to it.

        Flow:
        1. Resolve the acting user from the access token
        2. Load the room prompt
        3. Store the user message
        4. Build the request and call the completion provider
        5. Store the reply under the assistant identity

        A provider failure, or a failure to store the reply, ends in
        REPLY_FAILED; the user message stays stored.

        Raises:
            IdentityNotFound: If the token is unknown
            RoomNotFound: If the room does not exist
            StorageFailure: If the user message cannot be stored
        """
        user = self.identity.resolve_by_token_or_fail(session, access_token)
        room = self.rooms.get_room_name_prompt(session, room_id)

        user_msg = self.messages.insert_message(
            session, text=message_text, room_id=room_id, user_id=user.user_id
        )
        state = SendState.USER_MESSAGE_PERSISTED

        request = self.assembler.build_request(room.prompt, message_text)
        state = SendState.REQUEST_BUILT

        try:
            state = SendState.AWAITING_PROVIDER
            reply_text = self.assembler.complete(request)

            reply_msg = self.messages.insert_message(
                session, text=reply_text, room_id=room_id, user_id=self.assistant_user_id
            )
        except (CompletionProviderFailure, EmptyCompletion, StorageFailure) as e:
            logger.error(
                f"Reply generation failed: user={user.user_id}, room={room_id}, "
                f"message_id={user_msg.id}, state={state.value}: {e}"
            )
            return SendOutcome(
                state=SendState.REPLY_FAILED, user_message=user_msg, error=str(e)
            )

        logger.info(
            f"Chat message processed: user={user.user_id}, room={room_id}, "
            f"message_id={user_msg.id}, response_id={reply_msg.id}"
        )
        return SendOutcome(
            state=SendState.REPLY_PERSISTED, user_message=user_msg, reply=reply_msg
        )
