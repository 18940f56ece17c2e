"""
Unit tests for AddressResolver.
"""

import httpx
import pytest

from service_geocoding.app.geocoding import AddressResolver
from shared.errors import NotFoundError, UnavailableError
from shared.retry import RetryConfig

VIACEP_PAULISTA = {
    "cep": "01310-100",
    "logradouro": "Avenida Paulista",
    "complemento": "de 612 a 1510 - lado par",
    "bairro": "Bela Vista",
    "localidade": "São Paulo",
    "uf": "SP",
    "ibge": "3550308",
    "gia": "1004",
    "ddd": "11",
    "siafi": "7107"
}


class RecordingHandler:
    """MockTransport handler replaying a scripted list of outcomes."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome.status_code, headers=outcome.headers, content=outcome.content)


class TestAddressResolver:
    """Test cases for AddressResolver."""

    def make_resolver(self, handler) -> AddressResolver:
        return AddressResolver(
            "https://viacep.com.br/ws",
            retry_config=RetryConfig.from_retries(3, 0),
            transport=httpx.MockTransport(handler)
        )

    @pytest.mark.asyncio
    async def test_lookup_success(self):
        """Test a ViaCEP answer is mapped to an Address."""
        handler = RecordingHandler(httpx.Response(200, json=VIACEP_PAULISTA))
        resolver = self.make_resolver(handler)

        address = await resolver.lookup("01310-100")

        assert str(handler.requests[0].url) == "https://viacep.com.br/ws/01310100/json/"
        assert address.postal_code == "01310-100"
        assert address.street == "Avenida Paulista"
        assert address.district == "Bela Vista"
        assert address.city == "São Paulo"
        assert address.state == "SP"
        assert address.ibge == "3550308"
        assert address.ddd == "11"

    @pytest.mark.asyncio
    async def test_lookup_erro_flag_is_not_found(self):
        """Test the provider's error flag maps to not found without retrying."""
        handler = RecordingHandler(httpx.Response(200, json={"erro": True}))
        resolver = self.make_resolver(handler)

        with pytest.raises(NotFoundError) as exc_info:
            await resolver.lookup("99999998")

        assert exc_info.value.code == "CEP_NOT_FOUND"
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_lookup_404_is_not_found(self):
        """Test a 404 maps to not found without retrying."""
        handler = RecordingHandler(httpx.Response(404))
        resolver = self.make_resolver(handler)

        with pytest.raises(NotFoundError):
            await resolver.lookup("99999998")

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_lookup_retries_server_errors(self):
        """Test 5xx answers are retried three times before giving up."""
        handler = RecordingHandler(httpx.Response(503))
        resolver = self.make_resolver(handler)

        with pytest.raises(UnavailableError) as exc_info:
            await resolver.lookup("01310100")

        assert exc_info.value.code == "SERVICE_UNAVAILABLE"
        assert exc_info.value.message.startswith("ViaCEP")
        assert len(handler.requests) == 4

    @pytest.mark.asyncio
    async def test_lookup_recovers_after_transport_error(self):
        """Test a transient connection failure is retried."""
        handler = RecordingHandler(
            httpx.ConnectError("connection refused"),
            httpx.Response(200, json=VIACEP_PAULISTA)
        )
        resolver = self.make_resolver(handler)

        address = await resolver.lookup("01310100")

        assert address.city == "São Paulo"
        assert len(handler.requests) == 2

    @pytest.mark.asyncio
    async def test_lookup_unexpected_status(self):
        """Test other non-200 answers are unavailable and not retried."""
        handler = RecordingHandler(httpx.Response(400))
        resolver = self.make_resolver(handler)

        with pytest.raises(UnavailableError):
            await resolver.lookup("01310100")

        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_lookup_malformed_body(self):
        """Test a non-JSON body is reported as unavailable."""
        handler = RecordingHandler(httpx.Response(200, text="<html>oops</html>"))
        resolver = self.make_resolver(handler)

        with pytest.raises(UnavailableError):
            await resolver.lookup("01310100")

    @pytest.mark.asyncio
    async def test_lookup_non_object_body(self):
        """Test a JSON body that is not an object is reported as unavailable."""
        handler = RecordingHandler(httpx.Response(200, json=["unexpected"]))
        resolver = self.make_resolver(handler)

        with pytest.raises(UnavailableError) as exc_info:
            await resolver.lookup("01310100")

        assert exc_info.value.code == "SERVICE_UNAVAILABLE"
        assert len(handler.requests) == 1

    @pytest.mark.asyncio
    async def test_is_available(self):
        """Test the probe queries the known CEP once."""
        handler = RecordingHandler(httpx.Response(200, json=VIACEP_PAULISTA))
        resolver = self.make_resolver(handler)

        assert await resolver.is_available() is True
        assert str(handler.requests[0].url) == "https://viacep.com.br/ws/01310100/json/"

    @pytest.mark.asyncio
    async def test_is_available_on_failure(self):
        """Test the probe reports down without retrying."""
        handler = RecordingHandler(httpx.ConnectError("connection refused"))
        resolver = self.make_resolver(handler)

        assert await resolver.is_available() is False
        assert len(handler.requests) == 1
