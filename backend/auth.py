"""
Password-gated deletion.

The admin password is checked before the store is touched, so a rejected
caller learns nothing about which records exist.
"""
import hmac
from typing import Optional

from bson import ObjectId

from errors import AuthorizationError, RequestValidationError
from queries import AnyOf, FieldEquals, Filter

INVALID_PASSWORD = "管理员密码错误或未提供"
MISSING_RECORD_ID = "未指定要删除的记录ID"

# Client-side keys that can stand in for the store id
FALLBACK_ID_FIELDS = ("localId", "serverId", "deviceId")


def authorize_delete(supplied: Optional[str], expected: Optional[str]) -> None:
    if not supplied or expected is None:
        raise AuthorizationError(INVALID_PASSWORD)
    if not hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise AuthorizationError(INVALID_PASSWORD)


def extract_record_id(path: str) -> str:
    record_id = path.split("/")[-1]
    if not record_id or record_id == "donations":
        raise RequestValidationError(MISSING_RECORD_ID)
    return record_id


def delete_criteria(record_id: str) -> Filter:
    if ObjectId.is_valid(record_id):
        return FieldEquals("_id", ObjectId(record_id))
    return AnyOf([FieldEquals(name, record_id) for name in FALLBACK_ID_FIELDS])
