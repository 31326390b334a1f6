"""
Xendit 웹훅 페이로드 필드 추출기

게이트웨이 연동 버전에 따라 페이로드 모양이 달라서, 필드마다 추출 함수 목록을
정해진 우선순위로 시도한다. 각 함수는 payload -> Optional[값] 형태의 순수 함수다.
"""
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Sequence

Extractor = Callable[[Dict[str, Any]], Any]

DEFAULT_FIRST_NAME = "Unknown"
DEFAULT_LAST_NAME = "User"


def _get(d: Dict, *keys: str, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict) or k not in cur:
            return default
        cur = cur[k]
    return cur


def _to_decimal(value: Any) -> Optional[Decimal]:
    try:
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float, Decimal)):
            value = str(value)
        if isinstance(value, str):
            value = value.strip()
            if not value:
                return None
        d = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    # NaN/Infinity 는 금액으로 취급하지 않음
    return d if d.is_finite() else None


def _clean_str(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def first_match(payload: Dict[str, Any], extractors: Sequence[Extractor]) -> Any:
    """우선순위대로 추출기를 실행해 처음으로 값이 나온 결과를 반환"""
    if not isinstance(payload, dict):
        return None
    for extractor in extractors:
        value = extractor(payload)
        if value is not None:
            return value
    return None


# 인보이스 ID: id > data.id > external_id
INVOICE_ID_EXTRACTORS: Sequence[Extractor] = (
    lambda p: _clean_str(p.get("id")),
    lambda p: _clean_str(_get(p, "data", "id")),
    lambda p: _clean_str(p.get("external_id")),
)

PAYMENT_ID_EXTRACTORS: Sequence[Extractor] = (
    lambda p: _clean_str(p.get("payment_id")),
    lambda p: _clean_str(_get(p, "data", "payment_id")),
)

PAYER_EMAIL_EXTRACTORS: Sequence[Extractor] = (
    lambda p: _clean_str(p.get("payer_email")),
    lambda p: _clean_str(_get(p, "customer", "email")),
    lambda p: _clean_str(_get(p, "data", "customer", "email")),
    lambda p: _clean_str(_get(p, "data", "payer_email")),
)

AMOUNT_EXTRACTORS: Sequence[Extractor] = (
    lambda p: _to_decimal(p.get("amount")),
    lambda p: _to_decimal(p.get("paid_amount")),
    lambda p: _to_decimal(_get(p, "data", "amount")),
)

CURRENCY_EXTRACTORS: Sequence[Extractor] = (
    lambda p: _clean_str(p.get("currency")),
    lambda p: _clean_str(_get(p, "data", "currency")),
)

FULL_NAME_EXTRACTORS: Sequence[Extractor] = (
    lambda p: _clean_str(_get(p, "customer", "name")),
    lambda p: _clean_str(_get(p, "customer", "full_name")),
    lambda p: _clean_str(_get(p, "data", "customer", "name")),
    lambda p: _clean_str(p.get("payer_name")),
)


def extract_invoice_id(payload: Dict[str, Any]) -> Optional[str]:
    return first_match(payload, INVOICE_ID_EXTRACTORS)


def extract_payment_id(payload: Dict[str, Any]) -> Optional[str]:
    """결제 ID가 없으면 인보이스 ID를 결제 ID로 사용"""
    return first_match(payload, PAYMENT_ID_EXTRACTORS) or extract_invoice_id(payload)


def extract_payer_email(payload: Dict[str, Any]) -> Optional[str]:
    email = first_match(payload, PAYER_EMAIL_EXTRACTORS)
    return email.lower() if email else None


def extract_amount(payload: Dict[str, Any]) -> Optional[Decimal]:
    return first_match(payload, AMOUNT_EXTRACTORS)


def extract_currency(payload: Dict[str, Any], default: str = "PHP") -> str:
    currency = first_match(payload, CURRENCY_EXTRACTORS)
    return currency.upper() if currency else default


def extract_item_names(payload: Dict[str, Any]) -> List[str]:
    items = payload.get("items") if isinstance(payload, dict) else None
    if not items:
        items = _get(payload, "data", "items", default=[])
    if not isinstance(items, list):
        return []
    names: List[str] = []
    for item in items:
        if isinstance(item, dict):
            name = _clean_str(item.get("name"))
            if name:
                names.append(name)
    return names


@dataclass(frozen=True)
class CustomerName:
    first_name: str
    last_name: str
    is_placeholder: bool = False


def _explicit_name(payload: Dict[str, Any]) -> Optional[CustomerName]:
    for customer in (_get(payload, "customer"), _get(payload, "data", "customer")):
        if not isinstance(customer, dict):
            continue
        given = _clean_str(customer.get("given_names"))
        surname = _clean_str(customer.get("surname"))
        if given or surname:
            return CustomerName(given or DEFAULT_FIRST_NAME, surname or DEFAULT_LAST_NAME)
    return None


def _split_full_name(payload: Dict[str, Any]) -> Optional[CustomerName]:
    full_name = first_match(payload, FULL_NAME_EXTRACTORS)
    if not full_name:
        return None
    parts = full_name.split(None, 1)
    return CustomerName(parts[0], parts[1] if len(parts) > 1 else DEFAULT_LAST_NAME)


NAME_EXTRACTORS: Sequence[Extractor] = (
    _explicit_name,
    _split_full_name,
)


def extract_customer_name(payload: Dict[str, Any]) -> CustomerName:
    """given_names/surname > 전체 이름 분리 > Unknown/User"""
    name = first_match(payload, NAME_EXTRACTORS)
    if name is None:
        return CustomerName(DEFAULT_FIRST_NAME, DEFAULT_LAST_NAME, is_placeholder=True)
    return name
