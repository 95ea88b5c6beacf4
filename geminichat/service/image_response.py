"""
이미지 생성 응답 분류기

Gemini 이미지 모델의 응답은 모양이 일정하지 않습니다.
  1. inline_data(image/*) 파트가 있음           → ImagePayload
  2. 이미지 파트 없이 base64처럼 보이는 텍스트  → ImagePayload (image/png로 간주)
  3. 그 외 텍스트                                → TextPayload (거절/설명 메시지)
  4. 아무것도 없음                               → Unrecognized

SDK는 inline_data.data를 디코딩된 bytes로 돌려주므로 저장용으로 다시 base64 인코딩합니다.
"""
import base64
import re
from dataclasses import dataclass

from google.genai import types

BASE64_PATTERN = re.compile(r"[A-Za-z0-9+/=]+")
# 이보다 짧은 텍스트는 base64 이미지로 보지 않음
MIN_BASE64_TEXT_LENGTH = 1000
FALLBACK_MIME_TYPE = "image/png"


@dataclass(frozen=True)
class ImagePayload:
    mime_type: str
    data: str

    def to_data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


@dataclass(frozen=True)
class TextPayload:
    text: str


@dataclass(frozen=True)
class Unrecognized:
    raw: types.GenerateContentResponse

    def summary(self) -> dict:
        """로그용: 왜 해석하지 못했는지 알 수 있는 필드만"""
        candidate = self.raw.candidates[0] if self.raw.candidates else None
        feedback = self.raw.prompt_feedback
        return {
            "candidates": len(self.raw.candidates or []),
            "finish_reason": str(candidate.finish_reason) if candidate and candidate.finish_reason else None,
            "block_reason": str(feedback.block_reason) if feedback and feedback.block_reason else None,
        }


ImageGenerationResult = ImagePayload | TextPayload | Unrecognized


def looks_like_base64(text: str) -> bool:
    return len(text) > MIN_BASE64_TEXT_LENGTH and BASE64_PATTERN.fullmatch(text.strip()) is not None


def _first_candidate_parts(response: types.GenerateContentResponse) -> list[types.Part]:
    if not response.candidates:
        return []
    content = response.candidates[0].content
    return (content.parts if content else None) or []


def classify_image_response(response: types.GenerateContentResponse) -> ImageGenerationResult:
    parts = _first_candidate_parts(response)

    for part in parts:
        inline = part.inline_data
        if inline and (inline.mime_type or "").startswith("image/") and inline.data:
            return ImagePayload(
                mime_type=inline.mime_type,
                data=base64.b64encode(inline.data).decode("ascii"),
            )

    text = next((part.text for part in parts if part.text), None)
    if text is None:
        return Unrecognized(raw=response)
    if looks_like_base64(text):
        return ImagePayload(mime_type=FALLBACK_MIME_TYPE, data=text.strip())
    return TextPayload(text=text)
