"""
Gemini 모델 클라이언트 (Model Gateway)

google-genai SDK의 비동기 클라이언트(client.aio.models.generate_content) 위에
대화/이미지 이해/이미지 생성 세 가지 호출만 얇게 감쌉니다.

  contents: [{"role": "user"|"model", "parts": [{"text": ...}]}]
  응답:     types.GenerateContentResponse (candidates[0].content.parts)

모델마다 GeminiModel 인스턴스를 하나씩 만들어 Dispatcher에 주입합니다.
(텍스트/이미지 이해용 1개, 이미지 생성용 1개, 같은 genai.Client 공유)
"""
import base64
import binascii

import httpx
from google import genai
from google.genai import errors, types


class ModelGatewayError(Exception):
    """Gemini 호출 실패: 네트워크 오류, API 에러 응답, 텍스트가 없는 응답"""


def user_turn(text: str) -> dict:
    return {"role": "user", "parts": [{"text": text}]}


def response_text(response: types.GenerateContentResponse) -> str:
    """첫 번째 후보의 text 파트를 이어붙여 반환 (텍스트가 하나도 없으면 실패)"""
    if not response.candidates:
        feedback = response.prompt_feedback
        block_reason = feedback.block_reason if feedback else None
        raise ModelGatewayError(f"응답 후보가 없습니다 (blockReason={block_reason})")

    candidate = response.candidates[0]
    parts = (candidate.content.parts if candidate.content else None) or []
    texts = [part.text for part in parts if part.text]
    if not texts:
        # 안전 필터/인용 차단 등: 후보는 있지만 content가 비어 있음
        raise ModelGatewayError(f"응답에 텍스트가 없습니다 (finishReason={candidate.finish_reason})")
    return "".join(texts)


class GeminiModel:

    def __init__(self, client: genai.Client, model: str):
        self.model = model
        self._client = client

    async def generate_content(
        self,
        contents: list,
        config: types.GenerateContentConfig | None = None,
    ) -> types.GenerateContentResponse:
        try:
            return await self._client.aio.models.generate_content(
                model=self.model,
                contents=contents,
                config=config,
            )
        except errors.APIError as e:
            raise ModelGatewayError(f"API request failed with status {e.code}: {e.message}") from e
        except httpx.HTTPError as e:
            raise ModelGatewayError(f"{self.model} 호출 실패: {e}") from e

    async def generate_text(self, contents: list) -> str:
        """대화 턴 목록 → 생성된 텍스트"""
        return response_text(await self.generate_content(contents))

    async def understand_image(self, prompt: str, image_base64: str, mime_type: str) -> str:
        """텍스트 + 인라인 이미지를 함께 보내 이미지에 대한 답을 받음"""
        try:
            image = base64.b64decode(image_base64, validate=True)
        except binascii.Error as e:
            raise ModelGatewayError("첨부 이미지를 base64로 해석할 수 없습니다") from e

        parts = []
        if prompt:
            parts.append(types.Part(text=prompt))
        parts.append(types.Part.from_bytes(data=image, mime_type=mime_type))
        return await self.generate_text([types.Content(role="user", parts=parts)])

    async def generate_image(self, prompt: str) -> types.GenerateContentResponse:
        """이미지 생성: 응답 해석은 image_response.classify_image_response 담당"""
        return await self.generate_content(
            [user_turn(prompt)],
            types.GenerateContentConfig(response_modalities=["TEXT", "IMAGE"]),
        )
