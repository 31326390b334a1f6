"""Xendit Invoice API 클라이언트"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx


logger = logging.getLogger(__name__)

UNKNOWN_STATUS = "UNKNOWN"


class XenditAPIError(RuntimeError):
    """Xendit API 오류"""

    def __init__(
        self,
        message: str,
        status_code: int,
        payload: Optional[Dict[str, Any]] = None,
        *,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}
        self.code = code or self._extract_error_code()

    def _extract_error_code(self) -> Optional[str]:
        if isinstance(self.payload, dict):
            return self.payload.get("error_code")
        return None


class XenditClient:
    """Xendit REST API 비동기 클라이언트 (비밀키 basic auth)"""

    ERROR_CODE_MESSAGES: Dict[str, str] = {
        "API_VALIDATION_ERROR": "Xendit API request parameters are invalid.",
        "INVALID_API_KEY": "Xendit API key is invalid.",
        "REQUEST_FORBIDDEN_ERROR": "Xendit API key lacks the required permission.",
        "INVOICE_NOT_FOUND_ERROR": "Xendit invoice not found.",
        "UNSUPPORTED_CURRENCY": "Currency is not enabled for this Xendit account.",
        "RATE_LIMIT_EXCEEDED": "Too many Xendit API calls; retry later.",
    }

    STATUS_MESSAGES: Dict[int, str] = {
        400: "Xendit API request parameters are invalid.",
        401: "Xendit API authentication failed.",
        403: "Xendit API access denied.",
        404: "Xendit resource not found.",
        429: "Xendit API rate limit reached.",
        500: "Xendit API server error.",
        503: "Xendit API temporarily unavailable.",
    }

    RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.xendit.co",
        timeout: float = 30.0,
        *,
        max_retries: int = 2,
        backoff_factor: float = 0.5,
    ) -> None:
        if not secret_key or not secret_key.strip():
            raise ValueError("Xendit secret key is not configured.")

        self.secret_key = secret_key.strip()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, int(max_retries))
        self.backoff_factor = max(0.0, float(backoff_factor))

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        auth = httpx.BasicAuth(self.secret_key, "")

        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, headers=headers, json=json, auth=auth)
            except httpx.RequestError as exc:
                logger.warning(
                    "[XENDIT] API request network error: %s %s attempt=%s error=%s",
                    method,
                    path,
                    attempt + 1,
                    exc,
                )

                if attempt == self.max_retries:
                    raise XenditAPIError(
                        "Xendit API network error.",
                        status_code=0,
                        payload={"message": str(exc)},
                        code="NETWORK_ERROR",
                    ) from exc

                await self._sleep_backoff(attempt)
                continue

            if response.status_code >= 400:
                payload = self._safe_json(response)
                message, code = self._resolve_error_message(payload, response.status_code)
                error = XenditAPIError(message, response.status_code, payload, code=code)

                if response.status_code in self.RETRYABLE_STATUS and attempt < self.max_retries:
                    logger.warning(
                        "[XENDIT] API request retry: %s %s status=%s code=%s attempt=%s",
                        method,
                        path,
                        response.status_code,
                        error.code,
                        attempt + 1,
                    )
                    await self._sleep_backoff(attempt)
                    continue

                logger.error(
                    "[XENDIT] API request failed: %s %s status=%s code=%s",
                    method,
                    path,
                    response.status_code,
                    error.code,
                )
                raise error

            try:
                return response.json()
            except ValueError as exc:
                logger.error("[XENDIT] could not parse API response: %s", exc)
                raise XenditAPIError(
                    "Could not parse Xendit API response.",
                    response.status_code,
                    payload={"message": str(exc)},
                    code="PARSE_ERROR",
                ) from exc

        raise XenditAPIError("Xendit API request failed repeatedly.", status_code=0)

    async def create_invoice(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """인보이스 생성 (invoice_url 포함)"""
        return await self._request("POST", "/v2/invoices", json=payload)

    async def get_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/v2/invoices/{invoice_id}")

    async def get_invoice_snapshot(self, invoice_id: str) -> Dict[str, Any]:
        """{"status": 대문자 상태, "payment_id": ...}

        조회 실패는 status=UNKNOWN으로 돌려주고 호출부는 나중에 재확인한다.
        """
        try:
            invoice = await self.get_invoice(invoice_id)
        except XenditAPIError as exc:
            logger.warning(
                "[XENDIT] invoice status unavailable: invoice_id=%s status=%s code=%s",
                invoice_id,
                exc.status_code,
                exc.code,
            )
            return {"status": UNKNOWN_STATUS, "payment_id": None}

        status = invoice.get("status") if isinstance(invoice, dict) else None
        if not isinstance(status, str) or not status.strip():
            status = UNKNOWN_STATUS
        return {
            "status": status.strip().upper(),
            "payment_id": invoice.get("payment_id") if isinstance(invoice, dict) else None,
        }

    async def get_invoice_status(self, invoice_id: str) -> str:
        snapshot = await self.get_invoice_snapshot(invoice_id)
        return snapshot["status"]

    async def _sleep_backoff(self, attempt: int) -> None:
        delay = self.backoff_factor * (2**attempt)
        if delay > 0:
            await asyncio.sleep(delay)

    def _resolve_error_message(self, payload: Dict[str, Any], status_code: int) -> tuple[str, Optional[str]]:
        code = payload.get("error_code") if isinstance(payload, dict) else None
        if code and code in self.ERROR_CODE_MESSAGES:
            return self.ERROR_CODE_MESSAGES[code], code

        message = payload.get("message") if isinstance(payload, dict) else None
        if isinstance(message, str) and message.strip():
            return message, code

        return self.STATUS_MESSAGES.get(status_code, "Xendit API request failed."), code

    @staticmethod
    def _safe_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            payload = response.json()
            return payload if isinstance(payload, dict) else {"data": payload}
        except ValueError:
            return {"message": response.text}
