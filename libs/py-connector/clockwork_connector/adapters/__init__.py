"""Provider adapters: raw provider APIs to NormalizedMetrics."""

from ..http_client import RetryingHttpClient
from ..vendor_types import ConfiguredProvider, VendorType
from .base import ProviderAdapter
from .fitbit import FitbitAdapter
from .polar import PolarAdapter
from .unimplemented import UnimplementedAdapter

ADAPTERS: dict[VendorType, type[ProviderAdapter]] = {
    VendorType.FITBIT: FitbitAdapter,
    VendorType.POLAR: PolarAdapter,
}


def build_adapter(config: ConfiguredProvider, http: RetryingHttpClient) -> ProviderAdapter | UnimplementedAdapter:
    """Adapter for a configured provider; Garmin, Oura and WHOOP get UnimplementedAdapter."""
    adapter_cls = ADAPTERS.get(config.name)
    if adapter_cls is None:
        return UnimplementedAdapter(config.name)
    return adapter_cls(config, http)


__all__ = [
    "ADAPTERS",
    "FitbitAdapter",
    "PolarAdapter",
    "ProviderAdapter",
    "UnimplementedAdapter",
    "build_adapter",
]
