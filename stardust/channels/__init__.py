"""Host-facing channels."""

from stardust.channels.ws_control import WSControlChannel

__all__ = ["WSControlChannel"]
