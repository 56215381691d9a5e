"""In-memory key/value knowledge base shared by one application instance."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _preview(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    return text[:100]


class KnowledgeBase:
    """Keyed entries with an optional category and substring search."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def run(self, operation: str, **kwargs: Any) -> dict[str, Any]:
        """Dispatch one of store/retrieve/search/delete/list.

        Raises:
            ValueError: When required arguments are missing or the operation
                is unknown.
        """
        handler = getattr(self, operation, None)
        if operation not in ("store", "retrieve", "search", "delete", "list") or handler is None:
            raise ValueError(f"Unknown operation: {operation}")
        return handler(**kwargs)

    def store(self, key=None, value=None, category=None, **_: Any) -> dict[str, Any]:
        if not key or value is None:
            raise ValueError("Key and value required for store operation")
        now = _now_iso()
        created_at = self._entries.get(key, {}).get("createdAt", now)
        entry = {
            "key": key,
            "value": value,
            "category": category,
            "createdAt": created_at,
            "updatedAt": now,
        }
        self._entries[key] = entry
        return {
            "success": True,
            "operation": "store",
            "key": key,
            "message": f"Stored information under key: {key}",
            "entry": entry,
        }

    def retrieve(self, key=None, **_: Any) -> dict[str, Any]:
        if not key:
            raise ValueError("Key required for retrieve operation")
        entry = self._entries.get(key)
        if entry is None:
            return {
                "success": False,
                "operation": "retrieve",
                "key": key,
                "message": f"No information found for key: {key}",
            }
        return {"success": True, "operation": "retrieve", "key": key, "data": entry}

    def search(self, query=None, **_: Any) -> dict[str, Any]:
        if not query:
            raise ValueError("Query required for search operation")
        needle = query.lower()
        results = [
            entry
            for key, entry in self._entries.items()
            if needle in key.lower()
            or needle in json.dumps(entry["value"], default=str).lower()
            or (entry["category"] and needle in entry["category"].lower())
        ]
        return {
            "success": True,
            "operation": "search",
            "query": query,
            "count": len(results),
            "results": results,
        }

    def delete(self, key=None, **_: Any) -> dict[str, Any]:
        if not key:
            raise ValueError("Key required for delete operation")
        existed = self._entries.pop(key, None) is not None
        return {
            "success": existed,
            "operation": "delete",
            "key": key,
            "message": (
                f"Deleted information for key: {key}"
                if existed
                else f"No information found for key: {key}"
            ),
        }

    def list(self, category=None, **_: Any) -> dict[str, Any]:
        entries = [
            {
                "key": entry["key"],
                "category": entry["category"],
                "createdAt": entry["createdAt"],
                "preview": _preview(entry["value"]),
            }
            for entry in self._entries.values()
            if not category or entry["category"] == category
        ]
        return {
            "success": True,
            "operation": "list",
            "category": category,
            "count": len(entries),
            "entries": entries,
        }
