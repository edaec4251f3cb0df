from idrac_gateway.auth import SessionAuthority
from idrac_gateway.config import GatewayConfig, load_gateway_config
from idrac_gateway.redfish import PowerControlClient, ResetType

__version__ = "0.1.0"

__all__ = [
    "GatewayConfig",
    "PowerControlClient",
    "ResetType",
    "SessionAuthority",
    "__version__",
    "load_gateway_config",
]
