"""Command line entry point: ``annowatch DIRECTORY``."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

from .errors import AnnowatchError
from .engine import WatcherService
from .watchers import WatchConfig, load_config_from_yaml, write_example_config

logger = logging.getLogger("annowatch")

EXIT_OK = 0
EXIT_FATAL = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="annowatch",
        description="Watch a directory and annotate every new text file.",
    )
    parser.add_argument("directory", nargs="?", help="Directory to watch")
    parser.add_argument("--config", type=Path, help="YAML settings file")
    parser.add_argument("--annotator", help="Annotator name (default: sentences)")
    parser.add_argument("--plugins-dir", type=Path, help="Directory of annotator plugins")
    parser.add_argument("--extension", dest="input_extension", help="Input file extension (default: .txt)")
    parser.add_argument("--suffix", dest="output_suffix", help="Artifact suffix (default: .xml)")
    parser.add_argument("--max-concurrent", type=int, help="Concurrent annotations, 0 = unbounded")
    parser.add_argument("--drain-timeout", type=float, help="Seconds to wait for in-flight files at shutdown")
    parser.add_argument("--settle-seconds", type=float, help="Quiet period before reading a file")
    parser.add_argument("--scan-existing", action="store_true", default=None,
                        help="Also process matching files already in the directory")
    parser.add_argument("--no-rescan", dest="rescan_on_overflow", action="store_false", default=None,
                        help="Do not rescan the directory after an overflow")
    parser.add_argument("--api-host", help="Admin API bind address")
    parser.add_argument("--api-port", type=int, help="Serve the admin API on this port")
    parser.add_argument("--log-level", default="info", help="Log level")
    parser.add_argument("--write-example-config", type=Path, metavar="FILE",
                        help="Write an example settings file and exit")
    return parser


_OVERRIDES = (
    "annotator",
    "plugins_dir",
    "input_extension",
    "output_suffix",
    "max_concurrent",
    "drain_timeout",
    "settle_seconds",
    "scan_existing",
    "rescan_on_overflow",
    "api_host",
    "api_port",
)


def build_config(args: argparse.Namespace) -> WatchConfig:
    """Layer defaults, the settings file and command line flags."""
    settings = load_config_from_yaml(args.config) if args.config else {}

    for key in _OVERRIDES:
        value = getattr(args, key)
        if value is not None:
            settings[key] = value

    if args.directory:
        settings["path"] = Path(args.directory)

    return WatchConfig.from_dict(settings)


async def run_service(config: WatchConfig, log_level: str = "info") -> None:
    """Run a watcher (and the admin API, if enabled) until a signal arrives."""
    service = WatcherService(config)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, service.request_shutdown)
        except NotImplementedError:
            logger.debug(f"Signal handlers not supported; {sig.name} will not stop the watcher cleanly")

    server = None
    api_task: Optional[asyncio.Task] = None
    if config.api_port:
        from .api import create_server

        server = create_server(service, config.api_host, config.api_port, log_level=log_level.lower())
        api_task = asyncio.create_task(server.serve())

    try:
        await service.run()
    finally:
        if server is not None:
            server.should_exit = True
            await asyncio.gather(api_task, return_exceptions=True)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.write_example_config:
        write_example_config(args.write_example_config)
        return EXIT_OK

    if not args.directory and not args.config:
        parser.error("the directory to watch is required")

    try:
        config = build_config(args)
    except (ValueError, TypeError) as e:
        parser.error(str(e))

    logger.info("Welcome to annowatch!")

    try:
        asyncio.run(run_service(config, args.log_level))
    except AnnowatchError as e:
        logger.error(f"ERROR: {e}")
        return EXIT_FATAL
    except KeyboardInterrupt:
        logger.info("Interrupted")

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
