"""CLI argument parsing and main entry point.

Provides two subcommands:

* ``mcp-hub serve`` - run the hub over SSE (Uvicorn) or stdio.
* ``mcp-hub exec``  - connect the backends, run one orchestration script
  and print its result.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import uvicorn

from mcp_hub.config.loader import find_config_file, load_hub_config
from mcp_hub.config.schema import HubConfig
from mcp_hub.constants import SERVER_NAME, SERVER_VERSION
from mcp_hub.display.logging_config import setup_logging
from mcp_hub.errors import ConfigurationError
from mcp_hub.server.format import to_json_text

module_logger = logging.getLogger(__name__)


def _load_config(config_path: Optional[str]) -> HubConfig:
    path = find_config_file(config_path)
    if path is None:
        module_logger.info("No configuration file found; starting without backends.")
        return HubConfig()
    return load_hub_config(path)


def _apply_server_overrides(config: HubConfig, args: argparse.Namespace) -> HubConfig:
    overrides = {
        key: getattr(args, key)
        for key in ("host", "port", "transport")
        if getattr(args, key, None) is not None
    }
    if not overrides:
        return config
    return config.model_copy(update={"server": config.server.model_copy(update=overrides)})


# ── ``mcp-hub serve`` ────────────────────────────────────────────────────


async def _run_sse(config: HubConfig, log_lvl: str) -> None:
    from mcp_hub.server.app import create_app

    host, port = config.server.host, config.server.port
    uvicorn_cfg = uvicorn.Config(
        app=create_app(config),
        host=host,
        port=port,
        log_config=None,
        log_level=log_lvl.lower() if log_lvl == "DEBUG" else "warning",
    )
    module_logger.info("Preparing to start Uvicorn server: http://%s:%s", host, port)
    try:
        await uvicorn.Server(uvicorn_cfg).serve()
    finally:
        module_logger.info("%s has shut down or is shutting down.", SERVER_NAME)


def _cmd_serve(args: argparse.Namespace) -> None:
    """Entry-point for ``mcp-hub serve``."""
    try:
        config = _apply_server_overrides(_load_config(args.config), args)
    except ConfigurationError as e_cfg:
        print(f"Configuration error: {e_cfg}", file=sys.stderr)
        sys.exit(1)

    stdio = config.server.transport == "stdio"
    _, log_lvl = setup_logging(args.log_level, quiet=stdio)
    module_logger.info(
        "---- %s v%s starting (transport: %s) ----",
        SERVER_NAME,
        SERVER_VERSION,
        config.server.transport,
    )

    try:
        if stdio:
            from mcp_hub.server.app import run_stdio

            asyncio.run(run_stdio(config))
        else:
            asyncio.run(_run_sse(config, log_lvl))
    except KeyboardInterrupt:
        module_logger.info("%s interrupted by KeyboardInterrupt.", SERVER_NAME)
    except Exception as e_fatal:
        module_logger.exception("%s encountered an uncaught fatal error: %s", SERVER_NAME, e_fatal)
        sys.exit(1)


# ── ``mcp-hub exec`` ─────────────────────────────────────────────────────


def _read_script(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


async def _run_script(config: HubConfig, code: str) -> bool:
    from mcp_hub.runtime.service import HubService

    service = HubService()
    await service.start(config)
    try:
        result = await service.meta_server.orchestrate(code)
    finally:
        await service.stop()
    print(to_json_text(result.to_dict()))
    return result.is_error


def _cmd_exec(args: argparse.Namespace) -> None:
    """Entry-point for ``mcp-hub exec SCRIPT``."""
    setup_logging(args.log_level, quiet=True)
    try:
        config = _load_config(args.config)
        code = _read_script(args.script)
    except (ConfigurationError, OSError) as e_load:
        print(f"Error: {e_load}", file=sys.stderr)
        sys.exit(1)

    if args.timeout_ms is not None:
        config = config.model_copy(
            update={"hub": config.hub.model_copy(update={"exec_timeout_ms": args.timeout_ms})}
        )

    try:
        is_error = asyncio.run(_run_script(config, code))
    except Exception as e_run:
        module_logger.exception("exec failed: %s", e_run)
        print(f"Error: {e_run}", file=sys.stderr)
        sys.exit(1)
    if is_error:
        sys.exit(1)


# ── Parser ───────────────────────────────────────────────────────────────


def _add_common_args(sp: argparse.ArgumentParser) -> None:
    sp.add_argument(
        "--config",
        type=str,
        default=None,
        metavar="PATH",
        help=(
            "Path to configuration file (YAML). "
            "Default: $MCP_HUB_CONFIG, then config.yaml/config.yml in the CWD"
        ),
    )
    sp.add_argument(
        "--log-level",
        type=str,
        default="info",
        choices=["debug", "info", "warning", "error", "critical"],
        help="Set file logging level (default: info)",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser with serve/exec subcommands."""
    parser = argparse.ArgumentParser(description=f"{SERVER_NAME} v{SERVER_VERSION}")
    subparsers = parser.add_subparsers(dest="command")

    # ── serve ────────────────────────────────────────────────────
    sp_serve = subparsers.add_parser("serve", help="Run the hub MCP server")
    _add_common_args(sp_serve)
    sp_serve.add_argument(
        "--transport",
        choices=["sse", "stdio"],
        default=None,
        help="Caller-facing transport (default: from config, else sse)",
    )
    sp_serve.add_argument("--host", type=str, default=None, help="Host address for SSE")
    sp_serve.add_argument("--port", type=int, default=None, help="Port for SSE")
    sp_serve.set_defaults(func=_cmd_serve)

    # ── exec ─────────────────────────────────────────────────────
    sp_exec = subparsers.add_parser(
        "exec", help="Run one orchestration script against the configured backends"
    )
    sp_exec.add_argument("script", metavar="SCRIPT", help="Script file, or '-' for stdin")
    _add_common_args(sp_exec)
    sp_exec.add_argument(
        "--timeout-ms",
        type=int,
        default=None,
        help="Script deadline in milliseconds (default: from config)",
    )
    sp_exec.set_defaults(func=_cmd_exec)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Program entry point: parse arguments and dispatch to subcommand."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)
    args.func(args)


if __name__ == "__main__":
    main()
