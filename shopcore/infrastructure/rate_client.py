"""Tax and shipping rate lookups.

HTTP clients for the external rate services, plus static tables used
when no service URL is configured (development, tests, single-store
installs with a flat rate).
"""

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog

from shopcore.domain.exceptions import RateLookupError
from shopcore.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# HTTP Clients
# ============================================================================


class _RateServiceClient:
    """Shared plumbing for the rate service clients."""

    service_name = "rate"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        request_id: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: Service base URL.
            timeout: Request timeout in seconds.
            request_id: Optional request ID for correlation.
            transport: Optional transport, used by tests.
        """
        self.base_url = base_url
        self.timeout = timeout
        self.request_id = request_id
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {}
            if self.request_id:
                headers["X-Request-ID"] = self.request_id
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_decimal(self, path: str, field: str) -> Decimal:
        try:
            client = await self._get_client()
            response = await client.get(path)
        except httpx.HTTPError as e:
            logger.warning(
                "Rate service unreachable",
                service=self.service_name,
                path=path,
                error=str(e),
            )
            raise RateLookupError(
                f"{self.service_name} service unavailable",
                details={"path": path},
            ) from e

        if response.status_code != 200:
            raise RateLookupError(
                f"{self.service_name} lookup failed with status {response.status_code}",
                details={"path": path, "status_code": response.status_code},
            )

        try:
            data: dict[str, Any] = response.json()
            value = Decimal(str(data[field]))
        except (ValueError, KeyError, TypeError, InvalidOperation) as e:
            raise RateLookupError(
                f"{self.service_name} service returned no usable '{field}'",
                details={"path": path},
            ) from e
        if not value.is_finite() or value < 0:
            raise RateLookupError(
                f"{self.service_name} service returned an invalid {field}: {value}",
                details={"path": path},
            )
        return value


class HttpTaxRateLookup(_RateServiceClient):
    """Tax percentage by category from the tax service.

    ``GET /tax-rates/{category}`` answers ``{"percent": "8.25"}``.
    """

    service_name = "tax"

    async def rate_for_category(self, category: str) -> Decimal:
        return await self._get_decimal(f"/tax-rates/{category}", "percent")


class HttpShippingRateLookup(_RateServiceClient):
    """Shipping charge by destination state from the shipping service.

    ``GET /shipping-rates/{state}`` answers ``{"amount": "5.00"}``.
    """

    service_name = "shipping"

    async def rate_for_state(self, state_code: str) -> Decimal:
        return await self._get_decimal(f"/shipping-rates/{state_code.upper()}", "amount")


# ============================================================================
# Static Tables
# ============================================================================


class StaticTaxRateLookup:
    """Tax percentage from a fixed table with a default."""

    def __init__(
        self, rates: Mapping[str, Decimal] | None = None, default: Decimal = Decimal("0")
    ) -> None:
        self.rates = {k: Decimal(v) for k, v in (rates or {}).items()}
        self.default = Decimal(default)

    async def rate_for_category(self, category: str) -> Decimal:
        return self.rates.get(category, self.default)


class StaticShippingRateLookup:
    """Shipping charge from a fixed table with a default."""

    def __init__(
        self, rates: Mapping[str, Decimal] | None = None, default: Decimal = Decimal("0")
    ) -> None:
        self.rates = {k.upper(): Decimal(v) for k, v in (rates or {}).items()}
        self.default = Decimal(default)

    async def rate_for_state(self, state_code: str) -> Decimal:
        return self.rates.get(state_code.upper(), self.default)


# ============================================================================
# Singletons
# ============================================================================


_tax_lookup: HttpTaxRateLookup | StaticTaxRateLookup | None = None
_shipping_lookup: HttpShippingRateLookup | StaticShippingRateLookup | None = None


def get_tax_lookup() -> HttpTaxRateLookup | StaticTaxRateLookup:
    """Get the tax lookup configured in settings."""
    global _tax_lookup
    if _tax_lookup is None:
        if settings.tax_service_url:
            _tax_lookup = HttpTaxRateLookup(
                settings.tax_service_url, timeout=settings.rate_lookup_timeout_seconds
            )
        else:
            _tax_lookup = StaticTaxRateLookup(default=settings.default_tax_percent)
    return _tax_lookup


def get_shipping_lookup() -> HttpShippingRateLookup | StaticShippingRateLookup:
    """Get the shipping lookup configured in settings."""
    global _shipping_lookup
    if _shipping_lookup is None:
        if settings.shipping_service_url:
            _shipping_lookup = HttpShippingRateLookup(
                settings.shipping_service_url, timeout=settings.rate_lookup_timeout_seconds
            )
        else:
            _shipping_lookup = StaticShippingRateLookup(default=settings.default_shipping_amount)
    return _shipping_lookup


async def close_rate_lookups() -> None:
    """Close HTTP clients and forget the singletons."""
    global _tax_lookup, _shipping_lookup
    for lookup in (_tax_lookup, _shipping_lookup):
        if isinstance(lookup, _RateServiceClient):
            await lookup.close()
    _tax_lookup = None
    _shipping_lookup = None


def reset_rate_lookups() -> None:
    """Forget the singletons without closing them. Used by tests."""
    global _tax_lookup, _shipping_lookup
    _tax_lookup = None
    _shipping_lookup = None
