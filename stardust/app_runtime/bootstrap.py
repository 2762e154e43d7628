"""Bootstrap helpers for the app runtime."""

from stardust.app_runtime.config import AppRuntimeConfig
from stardust.app_runtime.runtime import AppRuntime
from stardust.app_runtime.wire import WireDialer
from stardust.channels.ws_control import WSControlChannel


def build_runtime_if_enabled(
    *,
    dialer: WireDialer | None = None,
    config: AppRuntimeConfig | None = None,
) -> AppRuntime | None:
    """Build the runtime when the environment flag is enabled."""
    cfg = config or AppRuntimeConfig.from_env()
    if not cfg.enabled:
        return None
    return AppRuntime(dialer=dialer, config=cfg)


def build_control_channel_if_enabled(runtime: AppRuntime) -> WSControlChannel | None:
    """Build the websocket control channel when its flag is enabled."""
    if not runtime.config.control_enabled:
        return None
    return WSControlChannel(runtime.config, runtime)
