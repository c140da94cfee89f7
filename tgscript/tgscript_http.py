import asyncio
import logging
from typing import Optional, Dict, Any

import httpx

from tgscript.tgscript_serialize import deserialize

logger = logging.getLogger(__name__)


class HttpError(RuntimeError):
    def __init__(self, status: int, url: str, preview: str):
        super().__init__(f"HTTP {status} for {url}: {preview}")
        self.status = status
        self.url = url


async def http_request(method: str, url: str, *, config: Optional[Dict] = None, data: Optional[str] = None) -> Any:
    """
    Core HTTP helper.

    Returns the deserialized body on 2xx and raises HttpError otherwise.
    Transport errors are retried with exponential backoff; HTTP status
    errors are not.
    """
    cfg = dict(config or {})
    timeout = float(cfg.pop('timeout', 5.0))
    retries = int(cfg.pop('retries', 2))
    backoff = float(cfg.pop('backoff', 0.2))
    headers = dict(cfg.pop('headers', {}))
    params = dict(cfg.pop('params', {}))

    body = (data.encode('utf-8') if isinstance(data, str) else data) if data is not None else None
    if body is not None:
        headers.setdefault("Content-Type", "text/plain; charset=utf-8")

    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        for attempt in range(retries + 1):
            try:
                resp = await client.request(
                    method.upper(),
                    url,
                    headers=headers,
                    params=params,
                    content=body,
                )
            except httpx.TransportError as e:
                if attempt < retries:
                    logger.debug("%s %s failed (%s), retry %d", method.upper(), url, e, attempt + 1)
                    await asyncio.sleep(backoff * (2 ** attempt))
                    continue
                raise
            ct = resp.headers.get("Content-Type")
            if 200 <= resp.status_code < 300:
                return deserialize(resp.content, content_type=ct)
            preview = (resp.text or "")[:200]
            raise HttpError(int(resp.status_code), url, preview)


async def http_get(url: str, config: Optional[Dict] = None) -> Any:
    return await http_request('GET', url, config=config)


async def http_post(url: str, data: str, config: Optional[Dict] = None) -> Any:
    return await http_request('POST', url, config=config, data=data)
