from __future__ import annotations

import asyncio
import os
import sys
import uvicorn

# Install uvloop for better async performance (Linux/macOS only)
if sys.platform != "win32":
    try:
        import uvloop

        asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    except ImportError:
        pass  # uvloop not available, continue with default event loop

from .envs.server_env import get_settings


def _setup_prometheus_multiproc_dir() -> None:
    """Prepare the Prometheus multiprocess directory before Uvicorn forks workers."""
    prom_dir = os.environ.get("PROMETHEUS_MULTIPROC_DIR")
    if not prom_dir:
        return

    os.makedirs(prom_dir, exist_ok=True)
    for filename in os.listdir(prom_dir):
        file_path = os.path.join(prom_dir, filename)
        if os.path.isfile(file_path):
            os.remove(file_path)


def main() -> None:
    """Main entry point for the payments API."""

    config = get_settings()
    api = config.api

    print(f"Starting {api.app_name} v{api.app_version} ({api.environment})")
    if config.is_valid and config.payments is not None:
        payments = config.payments
        print(f"Treasury: {payments.treasury_address}")
        print(f"RPC: {payments.rpc_url} (chain {payments.chain_id})")
        print(f"Replay store: {payments.replay_store_url or 'in-memory'}")
    else:
        print(f"Payment service MISCONFIGURED ({len(config.errors)} error(s))")
    print(f"API will be available at: http://{api.api_host}:{api.api_port}")
    print(f"API Documentation: http://{api.api_host}:{api.api_port}/docs")

    # The in-memory replay guard is per process; run several workers only
    # with REPLAY_STORE_URL set.
    reload = api.api_debug
    workers = 1 if reload else api.api_workers

    _setup_prometheus_multiproc_dir()

    uvicorn.run(
        "playpass.api.app:app",
        host=api.api_host,
        port=api.api_port,
        reload=reload,
        workers=workers,
        log_level="info",
    )


if __name__ == "__main__":
    main()
