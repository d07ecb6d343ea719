from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId

from eastlink.core.errors import BadRequest

SENSITIVE_FIELDS = ("password", "reset_password_token", "reset_password_expire")

USER_SUMMARY = {"first_name": 1, "last_name": 1, "email": 1, "phone": 1, "business_name": 1,
                "vehicle_type": 1, "avatar": 1, "ratings": 1, "address": 1}


def utcnow() -> datetime:
    # naive UTC, matching what pymongo hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def oid_str(oid) -> str:
    return str(oid) if isinstance(oid, ObjectId) else oid


def to_object_id(value: Any, field: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise BadRequest(f"Invalid {field}")


def doc_to_public(doc: Any) -> Any:
    """Make a Mongo document JSON friendly: ``_id`` -> ``id``, ObjectIds to str,
    sensitive user fields removed. Works recursively on lists and sub-documents."""
    if isinstance(doc, list):
        return [doc_to_public(d) for d in doc]
    if isinstance(doc, ObjectId):
        return str(doc)
    if not isinstance(doc, dict):
        return doc
    out: Dict[str, Any] = {}
    for key, value in doc.items():
        if key in SENSITIVE_FIELDS:
            continue
        if key == "_id":
            out["id"] = oid_str(value)
        else:
            out[key] = doc_to_public(value)
    return out


def populate(db, docs, field: str, collection: str, projection: Optional[dict] = None, many_path: str = None):
    """Replace reference ids with the referenced documents, in place.

    ``field`` is a top level key; with ``many_path`` the reference lives in
    each element of the list ``docs[i][many_path]``.
    """
    if isinstance(docs, dict):
        docs = [docs]
    ids = set()
    for doc in docs:
        holders = doc.get(many_path, []) if many_path else [doc]
        for holder in holders:
            ref = holder.get(field)
            if isinstance(ref, ObjectId):
                ids.add(ref)
    if not ids:
        return docs
    found = {d["_id"]: d for d in db[collection].find({"_id": {"$in": list(ids)}}, projection)}
    for doc in docs:
        holders = doc.get(many_path, []) if many_path else [doc]
        for holder in holders:
            ref = holder.get(field)
            if isinstance(ref, ObjectId) and ref in found:
                holder[field] = found[ref]
    return docs


def ok(data: Any = None, message: Optional[str] = None) -> dict:
    """Success envelope; ``data`` goes through ``doc_to_public``."""
    body: Dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = doc_to_public(data)
    return body
