from __future__ import annotations

from pathlib import Path

from openpyxl import load_workbook

from addonsync.models import (
    ActionKind,
    Archive,
    ArchiveFailure,
    ExecutionReport,
    FailureKind,
    FolderAction,
    FolderClaim,
    Plan,
    RunReport,
)
from addonsync.report import export_report, print_plan_details


def _archive(name: str, folders, fp: str = "h") -> Archive:
    return Archive(Path(name), "_retail_", frozenset(folders), fp)


def _run_report() -> RunReport:
    a = _archive("A.zip", {"Shared"})
    b = _archive("B.zip", {"Shared"})
    c = _archive("C.zip", {"Own"})
    d = _archive("D.zip", {"Done"})
    plan = Plan(
        conflicts=[a, b],
        conflict_groups={FolderClaim("_retail_", "Shared"): [a, b]},
        to_install=[c],
        current=[d],
        to_remove=[FolderClaim("_retail_", "Old")],
    )
    execution = ExecutionReport(
        actions=[
            FolderAction(ActionKind.NEW, "_retail_", "Own", c),
            FolderAction(ActionKind.REMOVED, "_retail_", "Old"),
        ],
        installed=[c],
    )
    failure = ArchiveFailure(Path("Bad.zip"), "_retail_", FailureKind.CORRUPT, "not a zip file")
    return RunReport(archives=[a, b, c, d], plan=plan, execution=execution, inspection_failures=[failure])


def test_print_plan_details(capsys):
    print_plan_details(_run_report().plan)
    output = capsys.readouterr().out
    assert "[conflict] _retail_/Shared: A.zip; B.zip" in output
    assert "  [info] _retail_/C.zip: Own" in output
    assert "  [info] _retail_/Old" in output
    assert "1 of 4 archive(s) already current." in output


def test_print_plan_details_without_conflicts(capsys):
    print_plan_details(Plan())
    assert "[ok] No folder conflicts found." in capsys.readouterr().out


def test_export_report(tmp_path):
    output_path = tmp_path / "reports" / "run.xlsx"
    export_report(output_path, _run_report())

    workbook = load_workbook(output_path)
    assert workbook.sheetnames == ["archives", "actions", "failures"]

    archives = list(workbook["archives"].iter_rows(values_only=True))
    assert archives[0] == ("variant", "archive", "folders", "fingerprint", "status")
    assert [row[4] for row in archives[1:]] == ["conflict", "conflict", "install", "current"]

    actions = list(workbook["actions"].iter_rows(values_only=True))
    assert actions[1] == ("new", "_retail_", "Own", "C.zip")
    assert actions[2][0] == "removed"

    failures = list(workbook["failures"].iter_rows(values_only=True))
    assert failures[1] == ("corrupt_archive", "_retail_", "Bad.zip", "not a zip file")
    workbook.close()
