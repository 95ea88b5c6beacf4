"""
Message Dispatcher

sendMessage 한 건의 전체 흐름:
1. 대화 ID가 없으면 새 대화 생성 (제목 = 메시지 앞 50자)
2. 메시지 내용에 따라 Gemini 호출 경로 선택 (먼저 맞는 것 우선)
   - "/image ..."       → 이미지 생성 (실패 시 텍스트 모델로 한 번 대체)
   - 이미지 첨부 있음   → 이미지 이해 (텍스트 + 인라인 이미지)
   - 그 외              → 최근 대화 기록 + 새 메시지로 텍스트 생성
3. 사용자 메시지 저장 → AI 응답 저장 (순서대로, 각각 커밋)

두 저장 사이에서 실패하면 답 없는 사용자 메시지가 남습니다. 자동 복구는 하지 않습니다.
"""
import re
from dataclasses import dataclass
from typing import Protocol

from google.genai import types

from geminichat.core.config import settings
from geminichat.core.errors import InvalidInput, UpstreamFailure
from geminichat.core.logger import get_logger
from geminichat.core.metrics import metrics_store
from geminichat.core.storage import ScopedStore
from geminichat.models.conversation import DEFAULT_TITLE, Message
from geminichat.service import conversation_service
from geminichat.service.context_service import build_dialogue, load_context
from geminichat.service.gemini_client import ModelGatewayError, user_turn
from geminichat.service.image_response import ImagePayload, TextPayload, classify_image_response

logger = get_logger("chat")

IMAGE_COMMAND = "/image"
_IMAGE_COMMAND_PREFIX = re.compile(r"^/image\s*", re.IGNORECASE)

IMAGE_FAILURE_MESSAGE = (
    "I was unable to generate an image. The prompt may have been rejected. "
    "Please try again with a different prompt."
)
IMAGE_FALLBACK_PROMPT = "I'm unable to generate an image right now. Here's a response to your prompt: {prompt}"


class TextModel(Protocol):
    async def generate_text(self, contents: list) -> str: ...

    async def understand_image(self, prompt: str, image_base64: str, mime_type: str) -> str: ...


class ImageModel(Protocol):
    async def generate_image(self, prompt: str) -> types.GenerateContentResponse: ...


@dataclass(frozen=True)
class ImageAttachment:
    data: str           # base64 (data URI 접두사 없이)
    mime_type: str


@dataclass(frozen=True)
class Reply:
    content: str
    message_type: str


@dataclass(frozen=True)
class DispatchResult:
    assistant_message: Message
    conversation_id: str


def is_image_command(message: str) -> bool:
    return message.strip().lower().startswith(IMAGE_COMMAND)


def image_prompt(message: str) -> str:
    """'/image' 토큰과 뒤따르는 공백을 떼어낸 나머지"""
    return _IMAGE_COMMAND_PREFIX.sub("", message.strip(), count=1).strip()


class MessageDispatcher:

    def __init__(self, text_model: TextModel, image_model: ImageModel):
        self.text_model = text_model
        self.image_model = image_model

    async def dispatch(
        self,
        store: ScopedStore,
        message: str,
        conversation_id: str | None = None,
        attachment: ImageAttachment | None = None,
    ) -> DispatchResult:
        if not message.strip() and attachment is None:
            raise InvalidInput("메시지가 비어 있습니다.")

        # 1. 대화 세션: 없으면 새로 생성
        if not conversation_id:
            title = message.strip()[:settings.title_max_length] or DEFAULT_TITLE
            conversation = await conversation_service.create_conversation(store, title)
            conversation_id = conversation.id

        # 2. Gemini 호출
        try:
            if is_image_command(message):
                user_message_type = "image_prompt"
                reply = await self._generate_image(image_prompt(message))
            elif attachment is not None:
                user_message_type = "image_query"
                reply = await self._answer_about_image(message, attachment)
            else:
                user_message_type = "text"
                reply = await self._chat(store, conversation_id, message)
        except ModelGatewayError as e:
            logger.error(
                f"AI 응답 생성 실패: {e}",
                extra={"extra_data": {"conversation_id": conversation_id}},
            )
            raise UpstreamFailure("AI 응답을 생성하지 못했습니다.", cause=e) from e

        # 3. 사용자 메시지 → AI 응답 순서로 저장
        await conversation_service.add_message(
            store, conversation_id, "user", message, user_message_type
        )
        assistant_message = await conversation_service.add_message(
            store, conversation_id, "assistant", reply.content, reply.message_type
        )

        return DispatchResult(assistant_message=assistant_message, conversation_id=conversation_id)

    async def _generate_image(self, prompt: str) -> Reply:
        logger.info("이미지 생성 요청", extra={"extra_data": {"prompt_length": len(prompt)}})
        try:
            response = await self.image_model.generate_image(prompt)
        except ModelGatewayError as e:
            # 이미지 생성 실패 → 텍스트 모델에게 프롬프트에 대한 답을 대신 받음
            logger.warning(f"이미지 생성 실패, 텍스트 응답으로 대체: {e}")
            metrics_store.record_dispatch("image_generation", fallback=True)
            text = await self.text_model.generate_text(
                [user_turn(IMAGE_FALLBACK_PROMPT.format(prompt=prompt))]
            )
            return Reply(content=text, message_type="text")

        metrics_store.record_dispatch("image_generation")
        result = classify_image_response(response)
        if isinstance(result, ImagePayload):
            logger.info("이미지 생성 성공", extra={"extra_data": {"mime_type": result.mime_type}})
            return Reply(content=result.to_data_uri(), message_type="image")
        if isinstance(result, TextPayload):
            logger.warning("이미지 대신 텍스트 응답을 받음")
            return Reply(content=result.text, message_type="text")

        logger.error("이미지 생성 응답을 해석할 수 없음", extra={"extra_data": result.summary()})
        return Reply(content=IMAGE_FAILURE_MESSAGE, message_type="text")

    async def _answer_about_image(self, message: str, attachment: ImageAttachment) -> Reply:
        metrics_store.record_dispatch("image_query")
        text = await self.text_model.understand_image(message, attachment.data, attachment.mime_type)
        return Reply(content=text, message_type="text")

    async def _chat(self, store: ScopedStore, conversation_id: str, message: str) -> Reply:
        history = await load_context(store, conversation_id)
        logger.info(
            f"이전 메시지 {len(history)}개를 컨텍스트로 응답 생성",
            extra={"extra_data": {"conversation_id": conversation_id}},
        )
        metrics_store.record_dispatch("chat")
        text = await self.text_model.generate_text(build_dialogue(history, message))
        return Reply(content=text, message_type="text")
