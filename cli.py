from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

from addonsync import (
    AddonSyncError,
    export_report,
    load_program_config,
    run,
)
from addonsync.logging_utils import log_error, log_info, log_ok, log_warn


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Keep installed addon folders in sync with a directory of addon archives. "
            "Archives whose content differs from the installed copy are reinstalled, "
            "folders no archive provides any more are removed."
        )
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("addonsync.toml"),
        help="Path to the program configuration TOML file.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only print the actions that would be taken.",
    )
    parser.add_argument(
        "--skip-download",
        action="store_true",
        default=False,
        help="Do not check the download manifest for new archive versions.",
    )
    parser.add_argument(
        "--verbose-plan",
        action="store_true",
        default=False,
        help="Print conflicts, pending installs and removals before applying them.",
    )
    parser.add_argument(
        "--export-path",
        type=Path,
        default=Path(""),
        help="Path to save an Excel report of the run.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    try:
        config = load_program_config(args.config.expanduser())
        report = run(
            config,
            dry_run=args.dry_run,
            skip_download=args.skip_download,
            verbose_plan=args.verbose_plan,
        )

        export_path = args.export_path
        if not export_path == Path(""):
            if export_path.suffix.lower() != ".xlsx":
                export_path = export_path / "addonsync_report.xlsx"
            export_report(export_path.expanduser(), report)
            log_info(f"Report saved to {export_path}")
    except (AddonSyncError, ValueError, OSError) as exc:
        log_error(str(exc))
        log_error("Aborted.")
        raise SystemExit(1) from exc

    if report.failures:
        log_warn(f"Finished with {len(report.failures)} error(s).")
    elif report.changed and report.execution.dry_run:
        log_ok("Dry run finished.")
    elif report.changed:
        log_ok("Done.")
    else:
        log_ok("No updates needed.")


if __name__ == "__main__":
    main()
