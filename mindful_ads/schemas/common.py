from typing import Any, Optional


def envelope(data: Any = None, message: Optional[str] = None, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": True}
    if message is not None:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    payload.update(extra)
    return payload
