"""
Outbound HTTP for LLM providers.

LLM_PROXY_URL routes every provider call through one proxy, e.g.
``socks5://127.0.0.1:3128`` (needs ``httpx[socks]``) or ``http://127.0.0.1:3128``.
"""
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 60.0


def build_async_client(proxy_url: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT_S) -> httpx.AsyncClient:
    if proxy_url:
        logger.debug("LLM traffic goes through proxy %s", proxy_url)
    return httpx.AsyncClient(timeout=timeout, proxy=proxy_url or None)
