"""
GeminiModel 테스트 (genai.Client 대역으로 SDK 호출 인자/응답 처리 확인)
"""
import asyncio

import httpx
import pytest
from google.genai import errors, types

from geminichat.service.gemini_client import GeminiModel, ModelGatewayError, response_text, user_turn
from conftest import FakeGenaiClient, gemini_response


def test_텍스트_생성_요청_형식():
    client = FakeGenaiClient(gemini_response(types.Part(text="Hello "), types.Part(text="there")))
    model = GeminiModel(client, "gemini-2.5-flash")
    contents = [user_turn("hi")]

    assert asyncio.run(model.generate_text(contents)) == "Hello there"
    assert client.calls == [{"model": "gemini-2.5-flash", "contents": contents, "config": None}]


def test_이미지_생성은_응답_모달리티_지정():
    response = gemini_response(types.Part(text="drawing..."))
    client = FakeGenaiClient(response)
    model = GeminiModel(client, "gemini-2.0-flash-preview-image-generation")

    assert asyncio.run(model.generate_image("a cat")) is response
    call = client.calls[0]
    assert call["contents"] == [{"role": "user", "parts": [{"text": "a cat"}]}]
    assert call["config"].response_modalities == ["TEXT", "IMAGE"]


def test_이미지_이해는_텍스트와_인라인_이미지를_함께_전송():
    client = FakeGenaiClient(gemini_response(types.Part(text="a dog")))
    model = GeminiModel(client, "gemini-2.5-flash")

    assert asyncio.run(model.understand_image("what is it?", "QUJD", "image/webp")) == "a dog"
    content = client.calls[0]["contents"][0]
    assert content.role == "user"
    assert content.parts[0].text == "what is it?"
    assert content.parts[1].inline_data.mime_type == "image/webp"
    assert content.parts[1].inline_data.data == b"ABC"


def test_프롬프트_없는_이미지_이해는_이미지_파트만_전송():
    client = FakeGenaiClient(gemini_response(types.Part(text="a dog")))
    model = GeminiModel(client, "gemini-2.5-flash")

    asyncio.run(model.understand_image("", "QUJD", "image/png"))
    parts = client.calls[0]["contents"][0].parts
    assert len(parts) == 1
    assert parts[0].inline_data.mime_type == "image/png"


def test_base64가_아닌_첨부는_호출하지_않고_실패():
    client = FakeGenaiClient(gemini_response(types.Part(text="unused")))
    model = GeminiModel(client, "gemini-2.5-flash")

    with pytest.raises(ModelGatewayError):
        asyncio.run(model.understand_image("what?", "not base64!", "image/png"))
    assert client.calls == []


def test_API_에러는_ModelGatewayError():
    client = FakeGenaiClient()
    client.error = errors.ClientError(
        429, {"error": {"code": 429, "message": "quota exceeded", "status": "RESOURCE_EXHAUSTED"}}
    )
    model = GeminiModel(client, "gemini-2.5-flash")

    with pytest.raises(ModelGatewayError, match="429"):
        asyncio.run(model.generate_text([user_turn("hi")]))


def test_네트워크_오류는_ModelGatewayError():
    client = FakeGenaiClient()
    client.error = httpx.ConnectError("connection refused")
    model = GeminiModel(client, "gemini-2.5-flash")

    with pytest.raises(ModelGatewayError):
        asyncio.run(model.generate_text([user_turn("hi")]))


def test_차단되어_텍스트가_없는_후보는_실패():
    client = FakeGenaiClient(gemini_response(finish_reason="SAFETY"))
    model = GeminiModel(client, "gemini-2.5-flash")

    with pytest.raises(ModelGatewayError, match="SAFETY"):
        asyncio.run(model.generate_text([user_turn("hi")]))


def test_빈_텍스트_파트만_있으면_실패():
    with pytest.raises(ModelGatewayError):
        response_text(gemini_response(types.Part(text="")))


def test_후보가_없는_응답은_텍스트_추출_실패():
    response = types.GenerateContentResponse(
        prompt_feedback=types.GenerateContentResponsePromptFeedback(block_reason="SAFETY")
    )
    with pytest.raises(ModelGatewayError, match="SAFETY"):
        response_text(response)
