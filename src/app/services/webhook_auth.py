"""
Xendit 웹훅 인증

- 콜백 토큰: 여러 헤더 이름 변형을 대소문자 구분 없이 찾고, 설정값과 다르면 거부 (fail-closed)
- 본문 서명: 비밀키가 설정된 경우에만 HMAC-SHA256 검증, 미설정이면 경고 후 통과 (fail-open)
"""
import hashlib
import hmac
import logging
from typing import Any, Iterable, Mapping, Optional

from core.responses import WebhookAuthenticationError

logger = logging.getLogger(__name__)

CALLBACK_TOKEN_HEADERS = (
    "x-callback-token",
    "x-callbacktoken",
    "callback-token",
    "callbacktoken",
)

SIGNATURE_HEADERS = (
    "x-callback-signature",
    "x-xendit-signature",
    "x-signature",
)


def _find_header(headers: Mapping[str, Any], names: Iterable[str]) -> Optional[str]:
    lowered = {str(k).lower(): v for k, v in headers.items()}
    for name in names:
        value = lowered.get(name)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return None


def extract_callback_token(headers: Mapping[str, Any]) -> Optional[str]:
    return _find_header(headers, CALLBACK_TOKEN_HEADERS)


def extract_signature(headers: Mapping[str, Any]) -> Optional[str]:
    return _find_header(headers, SIGNATURE_HEADERS)


def verify_callback_token(token: Optional[str], expected: Optional[str]) -> None:
    """토큰이 설정값과 정확히 같지 않으면 WebhookAuthenticationError"""
    if not expected:
        logger.error("[XENDIT] callback token is not configured; rejecting webhook")
        raise WebhookAuthenticationError("Invalid token")

    matched = token is not None and hmac.compare_digest(
        token.encode("utf-8"), expected.encode("utf-8")
    )
    if not matched:
        logger.warning(
            "[XENDIT] invalid callback token: received_len=%s expected_len=%s",
            len(token or ""),
            len(expected),
        )
        raise WebhookAuthenticationError("Invalid token")


def compute_signature(raw: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw, hashlib.sha256).hexdigest()


def verify_signature(raw: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    """본문 HMAC-SHA256 서명 검증"""
    if not secret:
        logger.warning("[XENDIT] webhook secret not configured; skipping signature verification")
        return

    if not signature:
        logger.warning("[XENDIT] webhook secret configured but signature header missing")
        return

    provided = signature.strip()
    if provided.lower().startswith("sha256="):
        provided = provided[len("sha256="):]
    expected = compute_signature(raw, secret)

    if not hmac.compare_digest(expected.encode("utf-8"), provided.lower().encode("utf-8")):
        logger.error("[XENDIT] signature mismatch")
        raise WebhookAuthenticationError("Invalid signature")


class WebhookAuthenticator:
    """콜백 토큰 + 선택적 본문 서명 검증"""

    def __init__(self, callback_token: Optional[str], webhook_secret: Optional[str] = None):
        self.callback_token = (callback_token or "").strip() or None
        self.webhook_secret = (webhook_secret or "").strip() or None

    def authenticate(self, headers: Mapping[str, Any], raw_body: bytes) -> None:
        token = extract_callback_token(headers)
        logger.info(
            "[XENDIT] token check: has_token=%s token_len=%s",
            token is not None,
            len(token or ""),
        )
        verify_callback_token(token, self.callback_token)
        verify_signature(raw_body, extract_signature(headers), self.webhook_secret)
