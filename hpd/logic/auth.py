import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union
from hpd.config import ProbeConfig
from hpd.errors import CredentialError
from hpd.http_client import HttpClient
from hpd.models import ProbeFailure, ProbeResult
from hpd.session import ProbeSession
from hpd.utils.logger import logger

USERNAME_MIN, USERNAME_MAX = 3, 20
PASSWORD_MIN = 6


@dataclass
class ApiReply:
    result: ProbeResult
    payload: Dict[str, Any]

    @property
    def code(self) -> Optional[int]:
        code = self.payload.get("code")
        return code if isinstance(code, int) else None

    @property
    def ok(self) -> bool:
        return self.code == 200

    @property
    def message(self) -> str:
        return str(self.payload.get("message") or self.code or self.result.status)


def validate_credentials(username: str, password: str):
    if not USERNAME_MIN <= len(username) <= USERNAME_MAX:
        raise CredentialError(f"Username must be {USERNAME_MIN}-{USERNAME_MAX} characters")
    if len(password) < PASSWORD_MIN:
        raise CredentialError(f"Password must be at least {PASSWORD_MIN} characters")


def _payload(result: ProbeResult) -> Dict[str, Any]:
    try:
        data = json.loads(result.text)
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class AuthClient:
    """Client side of the target's /api/register and /api/login endpoints."""

    def __init__(self, config: ProbeConfig, session: ProbeSession):
        self.config = config
        self.session = session

    async def _post(self, client: HttpClient, path: str, username: str, password: str) -> Union[ApiReply, ProbeFailure]:
        validate_credentials(username.strip(), password)
        resp = await client.post(self.config.url_for(path), body={"username": username.strip(), "password": password})
        if isinstance(resp, ProbeFailure):
            return resp
        return ApiReply(result=resp, payload=_payload(resp))

    async def register(self, client: HttpClient, username: str, password: str) -> Union[ApiReply, ProbeFailure]:
        reply = await self._post(client, "/api/register", username, password)
        if isinstance(reply, ApiReply):
            logger.info(f"Register {username}: {reply.message}")
        return reply

    async def login(self, client: HttpClient, username: str, password: str) -> Union[ApiReply, ProbeFailure]:
        reply = await self._post(client, "/api/login", username, password)
        if isinstance(reply, ApiReply):
            token = reply.payload.get("token")
            if reply.ok and token:
                self.session.login(username.strip(), str(token))
                logger.info(f"Logged in as {username}")
            else:
                logger.info(f"Login {username} rejected: {reply.message}")
        return reply
