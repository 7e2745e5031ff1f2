"""Built-in function tools.

Each touches the filesystem or network only through arguments named in the
tool's path_params/url_params, so the security policy can vet them.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import httpx

from ..models.tools import FunctionTool


def now() -> str:
    """Return current UTC datetime in ISO format."""
    return datetime.now(timezone.utc).isoformat()


def read_file(path: str, max_bytes: int = 100_000) -> Dict[str, Any]:
    """Read a UTF-8 text file."""
    target = Path(path)
    data = target.read_bytes()[:max_bytes]
    return {"path": str(target), "content": data.decode("utf-8", errors="replace")}


def list_directory(path: str) -> List[str]:
    """List entries of a directory."""
    return sorted(entry.name for entry in Path(path).iterdir())


def write_file(path: str, content: str) -> Dict[str, Any]:
    """Write a UTF-8 text file, replacing any existing content."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    return {"path": str(target), "bytes_written": len(content.encode("utf-8"))}


async def http_fetch(url: str, timeout: float = 20.0) -> Dict[str, Any]:
    """Fetch a URL and return status and body text."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=False) as client:
        response = await client.get(url)
    return {"url": url, "status_code": response.status_code, "text": response.text[:50_000]}


def _path_schema(**extra: Any) -> Dict[str, Any]:
    properties = {"path": {"type": "string", "description": "Filesystem path"}}
    properties.update(extra)
    return {"type": "object", "properties": properties, "required": list(properties)}


def builtin_tools() -> List[FunctionTool]:
    """Return the built-in tool set."""
    return [
        FunctionTool(
            name="now",
            description="Return the current UTC date and time in ISO 8601 format.",
            handler=now,
        ),
        FunctionTool(
            name="read_file",
            description="Read a UTF-8 text file.",
            parameters=_path_schema(),
            handler=read_file,
        ),
        FunctionTool(
            name="list_directory",
            description="List the entries of a directory.",
            parameters=_path_schema(),
            handler=list_directory,
        ),
        FunctionTool(
            name="write_file",
            description="Write a UTF-8 text file. Requires human approval.",
            parameters=_path_schema(content={"type": "string"}),
            handler=write_file,
            needs_approval=True,
        ),
        FunctionTool(
            name="http_fetch",
            description="Fetch a web page over HTTP(S).",
            parameters={
                "type": "object",
                "properties": {"url": {"type": "string", "format": "uri"}},
                "required": ["url"],
            },
            handler=http_fetch,
        ),
    ]
