"""Tests for plotline.llm — HttpLLM in both wire formats."""

import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock, patch

from plotline.llm import HttpLLM, LLMError


def _mock_response(body: dict, status: int = 200) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.json.return_value = body
    resp.raise_for_status = MagicMock(
        side_effect=None if status < 400 else httpx.HTTPStatusError(
            "", request=MagicMock(), response=resp
        )
    )
    return resp


# ---------------------------------------------------------------------------
# HttpLLM — OpenAI format (default)
# ---------------------------------------------------------------------------

class TestHttpLLMOpenAI:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="http://localhost:8080", model="mistral-7b")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        body = {"choices": [{"text": '{"optionIndex": 0, "confidence": 0.9}'}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("match", "prompt")
        assert result == '{"optionIndex": 0, "confidence": 0.9}'

    async def test_posts_to_correct_url(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("match", "prompt")
        assert mock_post.call_args[0][0] == "http://localhost:8080/v1/completions"

    async def test_sends_model_and_token_cap(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("match", "my prompt")
        sent_body = mock_post.call_args.kwargs["json"]
        assert sent_body == {"prompt": "my prompt", "max_tokens": 256, "model": "mistral-7b"}

    async def test_model_omitted_when_empty(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:8080")
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("match", "prompt")
        assert "model" not in mock_post.call_args.kwargs["json"]

    async def test_bearer_token_sent_when_api_key_set(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:8080", api_key="secret")
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("match", "prompt")
        headers = mock_post.call_args.kwargs["headers"]
        assert headers.get("Authorization") == "Bearer secret"

    async def test_no_auth_header_when_no_api_key(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("match", "prompt")
        assert "Authorization" not in mock_post.call_args.kwargs["headers"]

    async def test_trailing_slash_stripped_from_url(self) -> None:
        llm = HttpLLM(provider_url="http://localhost:8080/")
        mock_post = AsyncMock(return_value=_mock_response({"choices": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("match", "prompt")
        assert mock_post.call_args[0][0] == "http://localhost:8080/v1/completions"

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "kobold format accidentally"}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("match", "prompt")

    async def test_non_json_body_raises_llm_error(self, llm: HttpLLM) -> None:
        resp = _mock_response({})
        resp.json.side_effect = ValueError("not json")
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=resp)):
            with pytest.raises(LLMError, match="non-JSON"):
                await llm("match", "prompt")


# ---------------------------------------------------------------------------
# HttpLLM — KoboldCpp format
# ---------------------------------------------------------------------------

class TestHttpLLMKoboldCpp:
    @pytest.fixture
    def llm(self) -> HttpLLM:
        return HttpLLM(provider_url="http://localhost:5001", provider_format="koboldcpp")

    async def test_happy_path(self, llm: HttpLLM) -> None:
        body = {"results": [{"text": "The tavern is dark and smoky."}]}
        mock_post = AsyncMock(return_value=_mock_response(body))
        with patch("httpx.AsyncClient.post", mock_post):
            result = await llm("match", "prompt")
        assert result == "The tavern is dark and smoky."

    async def test_posts_to_correct_url_and_body(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"results": [{"text": "ok"}]}))
        with patch("httpx.AsyncClient.post", mock_post):
            await llm("match", "my prompt")
        assert mock_post.call_args[0][0] == "http://localhost:5001/api/v1/generate"
        assert mock_post.call_args.kwargs["json"] == {"prompt": "my prompt", "max_length": 256}

    async def test_connect_error_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Cannot connect"):
                await llm("match", "prompt")

    async def test_timeout_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(side_effect=httpx.TimeoutException("timeout"))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="timed out"):
                await llm("match", "prompt")

    async def test_http_error_raises_llm_error(self, llm: HttpLLM) -> None:
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_mock_response({}, status=503))):
            with pytest.raises(LLMError, match="HTTP 503"):
                await llm("match", "prompt")

    async def test_malformed_response_raises_llm_error(self, llm: HttpLLM) -> None:
        mock_post = AsyncMock(return_value=_mock_response({"unexpected": "format"}))
        with patch("httpx.AsyncClient.post", mock_post):
            with pytest.raises(LLMError, match="Unexpected response format"):
                await llm("match", "prompt")
