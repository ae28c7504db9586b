"""CLI entrypoint for the Airbnb listings cleaning pipeline."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from airbnb_clean.common.config_loader import PipelineConfig, load_config
from airbnb_clean.common.constants import EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS, STAGES
from airbnb_clean.common.errors import ContractError, PipelineError
from airbnb_clean.common.logging import build_logger, close_logger, log_event
from airbnb_clean.common.time_utils import generate_run_id, parse_run_date
from airbnb_clean.fetch.download import run_fetch
from airbnb_clean.pipeline.checks import run_checks
from airbnb_clean.pipeline.clean import run_clean
from airbnb_clean.pipeline.export import run_export
from airbnb_clean.pipeline.load import run_load
from airbnb_clean.pipeline.reports import write_run_summary


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", nargs="?", default="all", choices=[*STAGES, "all"])
    parser.add_argument("--run-date", default=None)
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    return parser.parse_args(argv)


def execute_stage(
    stage: str,
    config: PipelineConfig,
    data_dir: Path,
    run_id: str,
    run_date: str,
    logger: logging.Logger,
) -> None:
    if stage == "fetch":
        run_fetch(config, data_dir, logger=logger)
    elif stage == "load":
        run_load(config, data_dir, logger=logger)
    elif stage == "check":
        run_checks(config, data_dir, run_id, run_date, logger=logger)
    elif stage == "clean":
        run_clean(config, data_dir, run_id, logger=logger)
    elif stage == "export":
        run_export(config, data_dir, logger=logger)
    else:
        raise ValueError(f"Unknown stage: {stage}")


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    run_date = parse_run_date(args.run_date)
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    try:
        return _run_stages(args, run_id, run_date, data_dir, logger)
    finally:
        close_logger(logger)


def _run_stages(
    args: argparse.Namespace,
    run_id: str,
    run_date: str,
    data_dir: Path,
    logger: logging.Logger,
) -> int:
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    config = load_config(Path(args.config_dir), overlay_config_dir=overlay_config_dir)
    stages = STAGES if args.command == "all" else (args.command,)

    for stage in stages:
        log_event(logger, "stage start", run_id=run_id, stage=stage, event="STAGE_START")
        try:
            execute_stage(stage, config, data_dir, run_id, run_date, logger)
        except PipelineError as exc:
            log_event(
                logger,
                f"stage {stage} failed: {exc}",
                level=logging.ERROR,
                run_id=run_id,
                stage=stage,
                event="STAGE_FAIL",
                error_code=exc.error_code,
            )
            # Later stages depend on this one's output.
            if isinstance(exc, ContractError) or args.strict:
                return EXIT_HARD_FAIL
            return EXIT_PARTIAL
        except Exception as exc:
            logger.exception(
                f"unexpected failure in stage {stage}: {exc}",
                extra={"run_id": run_id, "stage": stage, "event": "STAGE_FAIL", "error_code": "UNEXPECTED_ERROR"},
            )
            if args.strict:
                return EXIT_HARD_FAIL
            return EXIT_PARTIAL
        log_event(logger, "stage end", run_id=run_id, stage=stage, event="STAGE_END")

    if "clean" in stages:
        write_run_summary(config, data_dir, run_id=run_id, run_date=run_date)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
