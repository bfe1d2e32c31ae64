from typing import Any, Dict, Optional

from fastapi import HTTPException


def api_error(
    status_code: int,
    error: str,
    details: Any = None,
    headers: Optional[Dict[str, str]] = None,
    **extra: Any
) -> HTTPException:
    """Build an HTTPException whose body renders as ``{"error", "details"}``."""
    detail: Dict[str, Any] = {"error": error}
    if details is not None:
        detail["details"] = details
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail, headers=headers)


def error_body(detail: Any) -> Dict[str, Any]:
    if isinstance(detail, dict) and "error" in detail:
        return detail
    return {"error": detail if isinstance(detail, str) else str(detail)}
