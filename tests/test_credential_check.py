import httpx
import pytest

from compliance_copilot.backends.credential_check import MODELS_URL, validate_credential

KEY = "AIza-test-key"


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_valid_key_uses_header_not_url():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"models": [{"name": "models/gemini-2.0-flash"}]})

    async with _client(handler) as client:
        result = await validate_credential(KEY, client=client)

    assert result.valid is True
    assert result.error is None
    request = seen[0]
    assert str(request.url).startswith(MODELS_URL)
    assert request.headers["x-goog-api-key"] == KEY
    assert KEY not in str(request.url)


@pytest.mark.asyncio
async def test_rejected_key_reports_service_message():
    def handler(request):
        return httpx.Response(
            400,
            json={"error": {"code": 400, "message": "API key not valid. Please pass a valid API key."}},
        )

    async with _client(handler) as client:
        result = await validate_credential(KEY, client=client)

    assert result.valid is False
    assert result.error == "API key not valid. Please pass a valid API key."


@pytest.mark.asyncio
async def test_non_json_error_body():
    async with _client(lambda request: httpx.Response(403, text="Forbidden")) as client:
        result = await validate_credential(KEY, client=client)

    assert result.valid is False
    assert "invalid" in result.error


@pytest.mark.asyncio
@pytest.mark.parametrize("credential", [None, "", "   "])
async def test_missing_key_makes_no_request(credential):
    def handler(request):
        raise AssertionError("no request expected")

    async with _client(handler) as client:
        result = await validate_credential(credential, client=client)

    assert result.valid is False
    assert result.error == "API key is missing."


@pytest.mark.asyncio
async def test_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        result = await validate_credential(KEY, client=client)

    assert result.valid is False
    assert "ConnectError" in result.error
