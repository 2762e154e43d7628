"""Process execution engine: routines, apps, sessions."""

from stardust.app_runtime.app import App, ProcessRegistry
from stardust.app_runtime.config import AppRuntimeConfig
from stardust.app_runtime.contracts import AbortRequested, ProcessParams, SyscallError, is_terminal
from stardust.app_runtime.process import Process
from stardust.app_runtime.runtime import AppRuntime, UnknownTargetError
from stardust.app_runtime.session import Session
from stardust.app_runtime.wire import WireDialer

__all__ = [
    "AbortRequested",
    "App",
    "AppRuntime",
    "AppRuntimeConfig",
    "Process",
    "ProcessParams",
    "ProcessRegistry",
    "Session",
    "SyscallError",
    "UnknownTargetError",
    "WireDialer",
    "is_terminal",
]
