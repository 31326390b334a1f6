"""
웹훅/인보이스 원본 JSON 보관 (디버깅 용도, 한 번 쓰고 다시 읽지 않음)
"""
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from core.base_service import Clock, utc_now

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]+")
MAX_COLLISION_SUFFIX = 100


def _safe_part(value: Any, fallback: str = "unknown") -> str:
    text = _UNSAFE_CHARS.sub("_", str(value)) if value not in (None, "") else ""
    return text.strip("._")[:80] or fallback


def _write_once(directory: Path, stem: str, document: Dict[str, Any]) -> Path:
    """같은 이름이 있으면 _1, _2 ... 를 붙여 새 파일로만 기록"""
    directory.mkdir(parents=True, exist_ok=True)
    for attempt in range(MAX_COLLISION_SUFFIX):
        filename = f"{stem}.json" if attempt == 0 else f"{stem}_{attempt}.json"
        path = directory / filename
        document["file_info"]["filename"] = filename
        try:
            with open(path, "x", encoding="utf-8") as fp:
                json.dump(document, fp, ensure_ascii=False, indent=2, default=str)
            return path
        except FileExistsError:
            continue
    raise FileExistsError(f"archive name exhausted: {stem}")


class WebhookArchive:
    """수신한 웹훅을 페이로드/헤더/이벤트 종류와 함께 보관"""

    def __init__(self, base_dir: str | Path, enabled: bool = True, clock: Optional[Clock] = None):
        self.base_dir = Path(base_dir)
        self.enabled = enabled
        self.clock = clock or utc_now

    def archive(
        self,
        payload: Any,
        headers: Mapping[str, Any],
        event_type: str,
    ) -> Optional[Path]:
        if not self.enabled:
            return None

        now = self.clock()
        data = payload if isinstance(payload, dict) else {}
        status = data.get("status") or "unknown"
        invoice_id = data.get("id") or "unknown"
        lowered = {str(k).lower(): v for k, v in headers.items()}

        stem = "webhook_{ts}_{event}_{status}_{invoice}".format(
            ts=now.strftime("%Y-%m-%d_%H-%M-%S"),
            event=_safe_part(event_type),
            status=_safe_part(status),
            invoice=_safe_part(invoice_id),
        )
        document = {
            "webhook_data": payload,
            "event_type": event_type,
            "headers": {
                "x-callback-token": "present" if any(
                    name in lowered for name in ("x-callback-token", "x-callbacktoken", "callback-token", "callbacktoken")
                ) else None,
                "user-agent": lowered.get("user-agent"),
                "content-type": lowered.get("content-type"),
            },
            "received_at": now.isoformat(),
            "file_info": {"filename": None, "saved_at": now.isoformat()},
        }

        try:
            path = _write_once(self.base_dir, stem, document)
        except Exception as e:
            logger.error("[XENDIT] failed to archive webhook: %s", e)
            return None

        logger.info(
            "[XENDIT] webhook archived: path=%s event=%s status=%s invoice_id=%s",
            path,
            event_type,
            status,
            invoice_id,
        )
        return path


class InvoiceArchive:
    """생성한 인보이스 응답을 사용자/플랜 정보와 함께 보관 (민감 정보 제외)"""

    def __init__(self, base_dir: str | Path, enabled: bool = True, clock: Optional[Clock] = None):
        self.base_dir = Path(base_dir)
        self.enabled = enabled
        self.clock = clock or utc_now

    def archive(
        self,
        invoice: Dict[str, Any],
        user: Dict[str, Any],
        plan: Dict[str, Any],
    ) -> Optional[Path]:
        if not self.enabled:
            return None

        now = self.clock()
        stem = "invoice_{ts}_{user}_{plan}".format(
            ts=now.strftime("%Y-%m-%d_%H-%M-%S"),
            user=_safe_part(user.get("id")),
            plan=_safe_part(plan.get("id")),
        )
        document = {
            "invoice_data": invoice,
            "user_info": {
                "id": user.get("id"),
                "first_name": user.get("first_name"),
                "last_name": user.get("last_name"),
                "email": user.get("email"),
            },
            "plan_info": plan,
            "created_at": now.isoformat(),
            "file_info": {"filename": None, "saved_at": now.isoformat()},
        }

        try:
            path = _write_once(self.base_dir, stem, document)
        except Exception as e:
            logger.error("[XENDIT] failed to archive invoice %s: %s", invoice.get("id"), e)
            return None

        logger.info("[XENDIT] invoice archived: path=%s invoice_id=%s", path, invoice.get("id"))
        return path
