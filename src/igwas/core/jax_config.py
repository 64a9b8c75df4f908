"""JAX setup for IGWAS.

JAX only evaluates the Student-t tail behind each neg_log10_p. The p-value
module switches on 64-bit mode itself; configure_jax() is the run-level entry
point that also pins the platform and logs what JAX ended up with.
"""

from __future__ import annotations

from typing import Any

import jax
from loguru import logger


def configure_jax(enable_x64: bool = True, platform: str | None = None) -> None:
    """Set JAX precision and, optionally, its platform.

    Args:
        enable_x64: Evaluate p-values in float64.
        platform: "cpu", "gpu" or "tpu"; None leaves the choice to JAX.
    """
    if enable_x64:
        jax.config.update("jax_enable_x64", True)
    if platform is not None:
        jax.config.update("jax_platform_name", platform)

    info = get_jax_info()
    logger.debug(
        f"JAX {info['version']} on {info['backend']} (x64={info['x64_enabled']})"
    )


def get_jax_info() -> dict[str, Any]:
    """Version, default backend, devices and x64 flag, for --version and logs."""
    return {
        "version": jax.__version__,
        "backend": jax.default_backend(),
        "devices": [str(d) for d in jax.devices()],
        "x64_enabled": bool(jax.config.jax_enable_x64),
    }
