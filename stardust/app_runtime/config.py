"""App runtime configuration from environment."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _is_true(value: str | None) -> bool:
    if not value:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class AppRuntimeConfig:
    """Config knobs for the app runtime and its control channel."""

    enabled: bool = False
    launch_routine: str = "launch"
    routine_ext: str = "lua"
    drain_poll_s: float = 1.0
    sandbox: bool = False
    control_enabled: bool = False
    control_host: str = "127.0.0.1"
    control_port: int = 8765
    control_token: str = ""

    @classmethod
    def from_env(cls) -> "AppRuntimeConfig":
        return cls(
            enabled=_is_true(os.getenv("STARDUST_RUNTIME_ENABLED")),
            launch_routine=os.getenv("STARDUST_LAUNCH_ROUTINE", "launch"),
            routine_ext=os.getenv("STARDUST_ROUTINE_EXT", "lua"),
            drain_poll_s=float(os.getenv("STARDUST_DRAIN_POLL_S", "1.0")),
            sandbox=_is_true(os.getenv("STARDUST_SANDBOX")),
            control_enabled=_is_true(os.getenv("STARDUST_CONTROL_ENABLED")),
            control_host=os.getenv("STARDUST_CONTROL_HOST", "127.0.0.1"),
            control_port=int(os.getenv("STARDUST_CONTROL_PORT", "8765")),
            control_token=os.getenv("STARDUST_CONTROL_TOKEN", ""),
        )

    def routine_path(self, routine_name: str) -> str:
        """Convention path of a routine's source inside the app namespace."""
        return f"/source/routines/{routine_name}.{self.routine_ext}"
