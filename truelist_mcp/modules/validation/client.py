from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import httpx

from truelist_mcp.utils import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, SERVER_VERSION, logger


class EmailState(Enum):
    OK = "ok"
    INVALID = "invalid"
    RISKY = "risky"
    ACCEPT_ALL = "accept_all"
    UNKNOWN = "unknown"


# Both remote vocabularies collapse onto EmailState here and nowhere else
STATE_ALIASES = {
    "ok": EmailState.OK,
    "valid": EmailState.OK,
    "email_invalid": EmailState.INVALID,
    "invalid": EmailState.INVALID,
    "risky": EmailState.RISKY,
    "accept_all": EmailState.ACCEPT_ALL,
    "catch_all": EmailState.ACCEPT_ALL,
    "unknown": EmailState.UNKNOWN,
}

DELIVERABLE_STATES = {EmailState.OK, EmailState.RISKY, EmailState.ACCEPT_ALL}

ERROR_SUB_STATE = "unknown_error"


class TruelistError(Exception):
    """A failed call to the Truelist API"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(TruelistError):
    pass


class RateLimitError(TruelistError):
    pass


def normalize_state(raw: Optional[str]) -> EmailState:
    if not raw:
        return EmailState.UNKNOWN
    return STATE_ALIASES.get(str(raw).strip().lower(), EmailState.UNKNOWN)


@dataclass
class ValidationOutcome:
    email: str
    state: EmailState
    sub_state: str
    error: Optional[str] = None
    suggestion: Optional[str] = None
    domain: Optional[str] = None
    canonical: Optional[str] = None
    mx_record: Optional[str] = None
    free_email: Optional[bool] = None
    role: Optional[bool] = None
    disposable: Optional[bool] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    verified_at: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.state is EmailState.OK

    @property
    def is_deliverable(self) -> bool:
        return self.state in DELIVERABLE_STATES

    @classmethod
    def failed(cls, email: str, error: str) -> "ValidationOutcome":
        return cls(
            email=email,
            state=EmailState.UNKNOWN,
            sub_state=ERROR_SUB_STATE,
            error=error or "Unknown error",
        )

    def to_dict(self) -> Dict:
        """Full shape reported by the single-address tool"""
        return {
            "email": self.email,
            "state": self.state.value,
            "sub_state": self.sub_state,
            "suggestion": self.suggestion,
            "domain": self.domain,
            "canonical": self.canonical,
            "mx_record": self.mx_record,
            "free_email": self.free_email,
            "role": self.role,
            "disposable": self.disposable,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "verified_at": self.verified_at,
            "is_valid": self.is_valid,
            "is_deliverable": self.is_deliverable,
        }

    def to_batch_dict(self) -> Dict:
        result = {
            "email": self.email,
            "state": self.state.value,
            "sub_state": self.sub_state,
            "is_valid": self.is_valid,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


def _pick(data: Dict[str, Any], *names: str) -> Any:
    for name in names:
        value = data.get(name)
        if value is not None:
            return value
    return None


def outcome_from_payload(email: str, payload: Any) -> ValidationOutcome:
    """Map a remote validation payload onto a ValidationOutcome.

    Accepts the Truelist wire shape (``{"emails": [{"email_state": ...}]}``)
    as well as the flat SDK-style shape (``{"state": ..., "subState": ...}``).
    The reported email is always the address that was asked for.
    """
    if isinstance(payload, dict) and isinstance(payload.get("emails"), list):
        entries = payload["emails"]
        if not entries:
            raise TruelistError(f"Truelist returned no result for {email}")
        payload = entries[0]
    if not isinstance(payload, dict):
        raise TruelistError(f"Unexpected response shape for {email}: {type(payload).__name__}")

    state = normalize_state(_pick(payload, "email_state", "state"))
    sub_state = _pick(payload, "email_sub_state", "sub_state", "subState")

    return ValidationOutcome(
        email=email,
        state=state,
        sub_state=str(sub_state) if sub_state is not None else state.value,
        suggestion=_pick(payload, "did_you_mean", "suggestion"),
        domain=_pick(payload, "domain"),
        canonical=_pick(payload, "canonical"),
        mx_record=_pick(payload, "mx_record", "mxRecord"),
        free_email=_pick(payload, "free_email", "freeEmail"),
        role=_pick(payload, "role"),
        disposable=_pick(payload, "disposable"),
        first_name=_pick(payload, "first_name", "firstName"),
        last_name=_pick(payload, "last_name", "lastName"),
        verified_at=_pick(payload, "verified_at", "verifiedAt"),
    )


class TruelistClient:
    """Thin async wrapper over the Truelist REST API.

    One instance is shared by every tool call; ``httpx.AsyncClient`` is safe
    for concurrent use so no locking is needed. Errors are raised, never
    retried.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
                "User-Agent": f"truelist-mcp/{SERVER_VERSION}",
            },
            transport=transport,
        )

    async def __aenter__(self) -> "TruelistClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise TruelistError(f"Timed out calling Truelist {path}: {e}")
        except httpx.HTTPError as e:
            raise TruelistError(f"HTTP error calling Truelist {path}: {e}")

        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"Truelist rejected the API key ({response.status_code}): {_error_message(response)}",
                status_code=response.status_code,
            )
        if response.status_code == 429:
            raise RateLimitError(
                f"Truelist rate limit exceeded: {_error_message(response)}",
                status_code=429,
            )
        if not response.is_success:
            raise TruelistError(
                f"Truelist returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError:
            raise TruelistError(
                f"Truelist returned a non-JSON body for {path}",
                status_code=response.status_code,
            )

    async def validate_one(self, email: str) -> ValidationOutcome:
        logger.debug(f"Validating {email}")
        payload = await self._request("POST", "/api/v1/verify_inline", params={"email": email})
        return outcome_from_payload(email, payload)

    async def account_info(self) -> Dict[str, Any]:
        return await self._request("GET", "/me")


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] or response.reason_phrase
    if isinstance(body, dict):
        message = _pick(body, "error", "message", "detail")
        if message is not None:
            return str(message)
    return str(body)[:200]
