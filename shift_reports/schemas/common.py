from typing import Any, Dict, List, Optional


def ok(data: Any = None, warnings: Optional[List[Dict]] = None) -> Dict:
    """Success envelope returned by every API route."""
    body = {"success": True, "data": data}
    if warnings:
        body["warnings"] = warnings
    return body


def failure(kind: str, message: str, details: Any = None) -> Dict:
    error = {"kind": kind, "message": message}
    if details is not None:
        error["details"] = details
    return {"success": False, "error": error}
