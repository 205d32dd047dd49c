"""
Record normalization and batch import validation.

normalize_donation never rejects input; callers decide what is valid.
Create checks name/project before normalizing, batch import filters after.
"""
import logging
import math
import random
import re
import string
import time
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from pydantic import TypeAdapter, ValidationError

from errors import RequestValidationError
from schemas import UNPAID, DonationRecord

logger = logging.getLogger(__name__)

NAME_REQUIRED = "姓名为必填项"
PROJECT_REQUIRED = "护持项目为必填项"
NO_VALID_DONATIONS = "没有有效的捐赠数据"

_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_LOCAL_ID_ALPHABET = string.ascii_lowercase + string.digits
_DATETIME = TypeAdapter(datetime)
_DATE = TypeAdapter(date)


def generate_local_id() -> str:
    suffix = "".join(random.choices(_LOCAL_ID_ALPHABET, k=9))
    return f"local_{int(time.time() * 1000)}_{suffix}"


def _text(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    return value if isinstance(value, str) else str(value)


def coerce_amount(value: Any) -> float:
    """Best-effort float; anything invalid, negative or non-finite becomes 0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return 0.0
    else:
        match = _NUMBER_PREFIX.match(str(value))
        if not match:
            return 0.0
        number = float(match.group(0))
    if not math.isfinite(number) or number < 0:
        return 0.0
    return number


def _parse_date_text(text: str) -> datetime:
    try:
        return _DATETIME.validate_python(text)
    except ValidationError:
        # bare calendar dates mean midnight UTC
        return datetime.combine(_DATE.validate_python(text), datetime.min.time())


def parse_submitted_at(value: Any) -> Optional[datetime]:
    """ISO-8601 strings and epoch milliseconds; naive values are taken as UTC."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        else:
            parsed = _parse_date_text(str(value).strip())
    except (ValueError, OverflowError, OSError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def normalize_donation(raw: Any) -> DonationRecord:
    body: Dict[str, Any] = raw if isinstance(raw, dict) else {}
    now = datetime.now(timezone.utc)

    submitted_at = parse_submitted_at(body.get("submittedAt"))
    if submitted_at is None:
        if body.get("submittedAt"):
            logger.warning("Unparseable submittedAt %r, using server time", body.get("submittedAt"))
        submitted_at = now

    return DonationRecord(
        name=_text(body.get("name")).strip(),
        project=_text(body.get("project")).strip(),
        method=_text(body.get("method")),
        amountTWD=coerce_amount(body.get("amountTWD")),
        amountRMB=coerce_amount(body.get("amountRMB")),
        content=_text(body.get("content")),
        payment=_text(body.get("payment"), UNPAID),
        contact=_text(body.get("contact")),
        deviceId=_text(body.get("deviceId")),
        batchId=_text(body.get("batchId")),
        localId=_text(body.get("localId")) or generate_local_id(),
        submittedAt=submitted_at,
        createdAt=now,
        updatedAt=now,
    )


def require_fields(body: Dict[str, Any]) -> None:
    """Fail fast on a single submission, one message per missing field."""
    if not _text(body.get("name")).strip():
        raise RequestValidationError(NAME_REQUIRED)
    if not _text(body.get("project")).strip():
        raise RequestValidationError(PROJECT_REQUIRED)


def validate_batch(candidates: Iterable[Any]) -> List[DonationRecord]:
    """Normalize every candidate and keep the ones with a name and a project."""
    normalized = [normalize_donation(item) for item in candidates]
    valid = [record for record in normalized if record.is_complete()]
    dropped = len(normalized) - len(valid)
    if dropped:
        logger.info("Batch import dropped %d of %d candidates", dropped, len(normalized))
    if not valid:
        raise RequestValidationError(NO_VALID_DONATIONS)
    return valid
