import logging

import httpx

from .config import BridgeConfig

logger = logging.getLogger("nextbridge.http_client")


class HttpClientFactory:
    """
    HTTP Client Factory for centralized SSL verification handling.
    """

    def __init__(self, config: BridgeConfig):
        self.config = config

    def create_async_client(self, **kwargs) -> httpx.AsyncClient:
        """
        Create an httpx.AsyncClient with configured SSL verification.

        Args:
            **kwargs: Additional arguments for httpx.AsyncClient
        """
        verify = kwargs.pop("verify", None)

        if verify is None:
            verify = self.config.VERIFY_SSL

        # The runtime API and the dev server are both local; host proxies must not apply.
        kwargs.setdefault("trust_env", False)

        logger.debug("Creating async client (verify=%s)", verify)
        return httpx.AsyncClient(verify=verify, **kwargs)
