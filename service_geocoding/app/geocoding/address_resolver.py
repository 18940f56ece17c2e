"""
Postal code to address resolution via ViaCEP.
"""

from typing import Any, Dict, Optional

import httpx

from shared.errors import NotFoundError, UnavailableError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, RetryError, retry_on_exception
from .models import Address
from .postal_code import normalize_cep

# Transport failures and 5xx responses; anything else is final.
RETRYABLE_ERRORS = (httpx.TransportError, httpx.HTTPStatusError)


class AddressResolver:
    """Looks up a CEP with ViaCEP.

    Transport errors are retried with exponential backoff. A "not found"
    answer is terminal. Exhausted retries surface as :class:`UnavailableError`.
    """

    PROVIDER = "ViaCEP"
    PROBE_CEP = "01310100"
    PROBE_TIMEOUT = 3.0

    def __init__(self, base_url: str = "https://viacep.com.br/ws", timeout: float = 5.0,
                 retry_config: Optional[RetryConfig] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.metrics = metrics
        self.retry_config = retry_config or RetryConfig.from_retries(3, 1.0)
        self.logger = get_logger("geocoding.address_resolver")
        self._fetch = retry_on_exception(RETRYABLE_ERRORS, config=self.retry_config)(self._fetch_once)

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self.transport)

    async def _fetch_once(self, cep: str) -> Dict[str, Any]:
        async with self._client(self.timeout) as client:
            response = await client.get(f"{self.base_url}/{cep}/json/")

        if response.status_code == 404:
            raise NotFoundError(details={"cep": cep})
        if response.status_code >= 500:
            response.raise_for_status()
        if response.status_code != 200:
            raise UnavailableError(
                self.PROVIDER,
                f"unexpected status {response.status_code}",
                details={"status_code": response.status_code}
            )

        data = response.json()
        if not isinstance(data, dict):
            raise UnavailableError(self.PROVIDER, "malformed response")
        if data.get("erro"):
            raise NotFoundError(details={"cep": cep})
        return data

    async def lookup(self, postal_code: str) -> Address:
        """Resolve ``postal_code`` to an :class:`Address`."""
        cep = normalize_cep(postal_code)

        try:
            if self.metrics:
                with self.metrics.time_operation("provider_request_duration_seconds", provider="viacep"):
                    data = await self._fetch(cep)
            else:
                data = await self._fetch(cep)
        except RetryError as e:
            self.logger.error("ViaCEP unavailable", cep=cep, attempts=e.attempts,
                              error=str(e.last_exception))
            raise UnavailableError(self.PROVIDER, details={"attempts": e.attempts}) from e
        except ValueError as e:
            self.logger.error("ViaCEP returned malformed body", cep=cep, error=str(e))
            raise UnavailableError(self.PROVIDER, "malformed response") from e

        return self._to_address(data)

    def _to_address(self, data: Dict[str, Any]) -> Address:
        return Address(
            postal_code=data.get("cep", ""),
            street=data.get("logradouro") or "",
            complement=data.get("complemento") or None,
            district=data.get("bairro") or "",
            city=data.get("localidade", ""),
            state=data.get("uf", ""),
            ibge=data.get("ibge") or None,
            gia=data.get("gia") or None,
            ddd=data.get("ddd") or None,
            siafi=data.get("siafi") or None,
        )

    async def is_available(self) -> bool:
        """Single bounded probe against a known CEP, independent of retries."""
        try:
            async with self._client(self.PROBE_TIMEOUT) as client:
                response = await client.get(f"{self.base_url}/{self.PROBE_CEP}/json/")
            return response.status_code == 200
        except httpx.HTTPError as e:
            self.logger.warning("ViaCEP probe failed", error=str(e))
            return False
