"""Catalogue management actions.

``apply_action`` reads an ``action`` field from a request body and
dispatches it to the gallery:

- ``delete``: remove the record with ``id``.
- ``setCategory``: set the category of ``id``. Blank means the default.
- ``renameCategory``: move every record in ``from`` to ``to``.
- ``deleteCategory``: move every record in ``name`` to ``replacement``.

Every outcome is a ``{"success", "message", ...}`` body.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping

from .gallery import GalleryStore
from .models import FailureKind, Result

SUCCESS_MESSAGES = {
    "delete": "Deleted",
    "setCategory": "Updated",
    "renameCategory": "Renamed",
    "deleteCategory": "Category deleted",
}


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return value.strip() if isinstance(value, str) else ""


def respond(success: bool, message: str, **extra: Any) -> Dict[str, Any]:
    return {"success": success, "message": message, **extra}


def _missing(what: str) -> Result[Dict[str, Any]]:
    return Result.fail(FailureKind.MISSING_PARAMETER, f"Missing {what}")


def _run(gallery: GalleryStore, action: str, payload: Mapping[str, Any]) -> Result[Dict[str, Any]]:
    if action == "delete":
        record_id = _text(payload, "id")
        if not record_id:
            return _missing("id")
        return gallery.delete(record_id)
    if action == "setCategory":
        record_id = _text(payload, "id")
        if not record_id:
            return _missing("id")
        return gallery.set_category(record_id, _text(payload, "category"))
    if action == "renameCategory":
        source, target = _text(payload, "from"), _text(payload, "to")
        if not source or not target:
            return _missing("parameters")
        return gallery.rename_category(source, target)
    if action == "deleteCategory":
        name = _text(payload, "name")
        if not name:
            return _missing("category name")
        return gallery.delete_category(name, _text(payload, "replacement"))
    return Result.fail(FailureKind.UNKNOWN_ACTION)


def apply_action(gallery: GalleryStore, payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Run one catalogue management action and build its response body."""
    action = _text(payload, "action")
    if not action:
        return respond(False, "Missing action")
    result = _run(gallery, action, payload)
    if not result.ok:
        return respond(False, result.failure.message)
    return respond(True, SUCCESS_MESSAGES[action], **result.value)
