import argparse
import logging
import os
import sys

from terrain_export.config import (
    DEFAULT_CONFIG_PATH,
    describe,
    load_config,
    write_default_config,
)
from terrain_export.errors import TerrainExportError
from terrain_export.exporter import run
from terrain_export.log_utils import setup_logging


def get_cli_args(argv=None):
    """Configures and parses command-line arguments."""
    p = argparse.ArgumentParser(
        prog="terrain-export",
        description="Renders terrain tile maps into blended previews and tile manifests.",
    )
    p.add_argument(
        "-c",
        "--config",
        default=DEFAULT_CONFIG_PATH,
        metavar="FILE",
        help=f"Path to the exporter config (default: {DEFAULT_CONFIG_PATH}).",
    )
    p.add_argument(
        "--init-config",
        action="store_true",
        help="Write a default config file and exit.",
    )
    p.add_argument(
        "-j",
        "--workers",
        type=int,
        default=1,
        metavar="N",
        help="Export N maps concurrently (default: 1).",
    )
    g_log = p.add_argument_group("Logging & Output")
    g_log.add_argument(
        "-v", "--verbose", action="store_true", help="Enable INFO logging."
    )
    g_log.add_argument(
        "-d", "--debug", action="store_true", help="Enable DEBUG logging."
    )
    g_log.add_argument(
        "--color-logs", action="store_true", help="Enable colored logging."
    )
    g_log.add_argument(
        "--log-file", metavar="FILE", help="Also write log output to a file."
    )
    return p.parse_args(argv)


def main(argv=None) -> int:
    """Main entry point for the terrain-export CLI."""
    args = get_cli_args(argv)
    log_level = logging.INFO if args.verbose else logging.WARNING
    if args.debug:
        log_level = logging.DEBUG

    setup_logging(log_level, args.color_logs, args.log_file)
    log = logging.getLogger("terrain_export.main")
    log.debug("Arguments received: %s", vars(args))

    try:
        if args.init_config or not os.path.isfile(args.config):
            if not args.init_config:
                log.warning("Config file %s not found; writing defaults", args.config)
            write_default_config(args.config)
            log.warning("Edit %s and run the exporter again", args.config)
            return 0

        config = load_config(args.config)
        log.info(describe(config))
        reports = run(config, workers=args.workers)
    except TerrainExportError as e:
        log.critical("%s", e)
        return 2

    failed = [report for report in reports if not report.success]
    log.info("Done: %d exported, %d failed", len(reports) - len(failed), len(failed))
    if failed:
        log.error("Failed maps: %s", ", ".join(report.map_name for report in failed))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
