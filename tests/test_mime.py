import pytest
from hpd.config import ProbeConfig
from hpd.http_client import HttpClient
from hpd.logic.mime import MimeResource, MimeValidator, PREVIEW_LIMIT
from hpd.models import FailureKind, MimeCheck, ProbeFailure
from tests.conftest import FAVICON


@pytest.fixture
def validator():
    return MimeValidator(ProbeConfig(base_url="http://example.com"))


def test_from_key():
    assert MimeResource.from_key("script").path == "/app.js"
    with pytest.raises(ValueError):
        MimeResource.from_key("video")


@pytest.mark.asyncio
@pytest.mark.parametrize("content_type,matched", [
    ("text/css; charset=utf-8", True),
    ("text/css", True),
    ("text/plain", False),
    ("", False),
])
async def test_matched_is_substring_containment(validator, mock_client, make_result, content_type, matched):
    headers = {"Content-Type": content_type} if content_type else {}
    mock_client.execute.return_value = make_result(headers=headers, body=b"a{}")

    check = await validator.check(mock_client, MimeResource.CSS)

    assert check.matched is matched
    assert check.url == "http://example.com/style.css"
    assert mock_client.execute.await_args.kwargs["bypass_cache"] is True


@pytest.mark.asyncio
async def test_text_preview_truncated(validator, mock_client, make_result):
    mock_client.execute.return_value = make_result(headers={"Content-Type": "text/html"}, body=b"x" * 400)

    check = await validator.check(mock_client, MimeResource.HTML)

    assert check.body_preview == "x" * PREVIEW_LIMIT + "..."


@pytest.mark.asyncio
async def test_binary_preview_never_decoded(validator, mock_client, make_result):
    mock_client.execute.return_value = make_result(headers={"Content-Type": "image/png"}, body=FAVICON)

    check = await validator.check(mock_client, MimeResource.IMAGE)

    assert check.body_preview == f"[binary data] size: {len(FAVICON)} bytes, type: image/png"


@pytest.mark.asyncio
async def test_check_all_stops_at_failure(validator, mock_client, make_result):
    failure = ProbeFailure(kind=FailureKind.NETWORK_ERROR, message="refused", url="http://example.com/style.css")
    mock_client.execute.side_effect = [make_result(headers={"Content-Type": "text/html"}), failure]

    result = await validator.check_all(mock_client)

    assert result is failure
    assert mock_client.execute.await_count == 2


@pytest.mark.asyncio
async def test_check_all_with_empty_selection(validator, mock_client):
    checks = await validator.check_all(mock_client, [])

    assert checks == []
    mock_client.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_check_all_against_server(demo_server):
    validator = MimeValidator(ProbeConfig(base_url=demo_server))
    async with HttpClient() as client:
        checks = await validator.check_all(client)

    assert [c.resource_key for c in checks] == ["html", "css", "script", "data", "image"]
    assert all(isinstance(c, MimeCheck) and c.matched for c in checks)
