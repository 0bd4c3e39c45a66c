from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from serverbee_deploy.adapters.web.server import DEFAULT_HOST, ControlPlane
from serverbee_deploy.cli import Port, parse_args
from serverbee_deploy.config import Config, InstallRootError
from serverbee_deploy.core import subprocess_tracker
from serverbee_deploy.core.auth import TokenGuard
from serverbee_deploy.core.launcher import WebProcess
from serverbee_deploy.core.logging_setup import (
    LoggingAlreadyInitialized,
    LoggingConfig,
    init_logging,
    is_initialized,
)
from serverbee_deploy.core.platforms import UnsupportedPlatformError
from serverbee_deploy.core.updater import (
    UpdateError,
    ensure_installed,
    prune_old_versions,
)
from serverbee_deploy.ports.auto_launch import AutoLaunchError
from serverbee_deploy.storage.settings_store import SettingsStore, StoreError

logger = logging.getLogger("serverbee_deploy")

PID_FILE_NAME = "deploy.pids"


class PortConfigError(ValueError):
    """The control plane port cannot be derived from the configured port."""


def _control_port(config: Config) -> int:
    """Port for the control plane: SERVERBEE_CONTROL_PORT, else port + 1."""
    raw = os.environ.get("SERVERBEE_CONTROL_PORT", "")
    try:
        value = int(raw) if raw else config.get_port() + 1
        return Port(value).get_value()
    except ValueError as e:
        raise PortConfigError(
            f"Invalid control plane port ({e}); set SERVERBEE_CONTROL_PORT "
            "or configure a port below 65535"
        ) from e


def _install_root() -> Path:
    home = os.environ.get("SERVERBEE_HOME", "")
    if home:
        return Path(home).expanduser().resolve()
    return Config.current_dir()


async def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()

    install_root = _install_root()
    init_logging(LoggingConfig(log_file=Config.deploy_log_path(install_root)))
    logger.info("serverbee-deploy starting (install root: %s)", install_root)

    args = parse_args(argv)

    # -- Persisted settings + configuration --
    db_path = os.environ.get("SERVERBEE_DB", "") or Config.default_db_path(install_root)
    store = SettingsStore(db_path)
    config = Config(store, install_root=install_root)

    if args.port is not None:
        config.set_port(Port(args.port))
    if args.github_download is not None:
        config.set_is_github_download(args.github_download)
    if args.auto_launch is not None:
        try:
            await asyncio.to_thread(config.set_auto_launch, args.auto_launch)
        except AutoLaunchError as e:
            logger.warning("Auto launch not updated: %s", e)

    try:
        control_port = _control_port(config)
    except PortConfigError:
        store.close()
        raise

    logger.info(
        "Version %s, port %d, download from %s",
        config.get_version(), config.get_port(),
        "GitHub" if config.get_is_github_download() else "mirror",
    )

    # -- Install and launch serverbee-web --
    release = config.release()
    bin_path = await ensure_installed(release)
    prune_old_versions(release)

    subprocess_tracker.set_pid_file(install_root / PID_FILE_NAME)
    subprocess_tracker.cleanup_stale_pids(bin_path.name)

    web_process = WebProcess(bin_path, port=config.get_port())

    guard = TokenGuard(store)
    control_host = os.environ.get("SERVERBEE_CONTROL_HOST", "") or DEFAULT_HOST
    control_plane = ControlPlane(
        config, guard, host=control_host, port=control_port,
    )

    stop_event = asyncio.Event()

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, handle_signal)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still
            # surfaces as KeyboardInterrupt in run().
            pass

    await control_plane.start()
    await web_process.start()
    if not guard.is_configured():
        logger.warning(
            "No communication token configured; protected endpoints are "
            "locked until one is set via POST /token/setup",
        )
    logger.info("serverbee-deploy is running. Press Ctrl+C to stop.")

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        await web_process.stop()
        await control_plane.stop()
        store.close()
        logger.info("serverbee-deploy stopped.")


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except (
        InstallRootError,
        LoggingAlreadyInitialized,
        PortConfigError,
        StoreError,
        UnsupportedPlatformError,
        UpdateError,
        OSError,
    ) as e:
        if is_initialized():
            logger.critical("Fatal: %s", e)
        else:
            print(f"serverbee-deploy: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    run()
