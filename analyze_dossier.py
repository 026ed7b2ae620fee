#!/usr/bin/env python3
"""
Dossier Analyzer - Command Line Interface
=========================================

Analyze an operator dossier saved as JSON (body of
GET api/operadores/{noColaborador}/expediente) and optionally produce the
export, evidence and summary artifacts.

    python analyze_dossier.py 10234.json --month 2025-02
    python analyze_dossier.py 10234.json --export logEntries --fields entry,exit,hoursWorked
    python analyze_dossier.py 10234.json --evidence "2025-10-25, 2025-11-11" --generated-by supervisor
    python analyze_dossier.py 10234.json --summary --calendar calendar.png
"""

import argparse
import logging
import sys

from core import DossierAnalyzer, DossierConfig
from core.errors import DossierError, NoMatchingRecordsError
from core.aggregation import month_start
from core.streaks import streak_summary
from models.data_models import ExportDataset, ExportFormat, ExportSelection
from parsers.dossier_parser import HTTPDossierSource, load_dossier_json
from reports.document_layout import (
    build_evidence_document, build_summary_document, parse_date_tokens, render_document,
)
from reports.export_formatter import field_catalog, format_export
from reports.sinks import ReportLabRenderer, SpreadsheetWriter
from visualization.dossier_calendar import DossierCalendar

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Operator dossier analytics")
    ap.add_argument("dossier", help="Path to a saved dossier JSON payload (collaborator number with --api-url)")
    ap.add_argument("--api-url", help="Fetch the dossier from this backend instead of a file")
    ap.add_argument("--token", help="Bearer token for --api-url")
    ap.add_argument("--start-date", help="fechaInicio forwarded to the backend")
    ap.add_argument("--end-date", help="fechaFin forwarded to the backend")
    ap.add_argument("--operator-id", help="Collaborator number (used when the payload has none)")
    ap.add_argument("--month", help="Calendar month, YYYY-MM")
    ap.add_argument("--preset", default="default", choices=["default", "strict"],
                    help="Threshold preset")
    ap.add_argument("--output-dir", default=".", help="Where artifacts are written")

    ap.add_argument("--export", choices=[d.value for d in ExportDataset],
                    help="Export a dataset to a spreadsheet")
    ap.add_argument("--fields", help="Comma-separated field keys (default: all)")
    ap.add_argument("--format", default=ExportFormat.SPREADSHEET.value,
                    choices=[f.value for f in ExportFormat])
    ap.add_argument("--from", dest="date_from", help="Log entries from date (inclusive)")
    ap.add_argument("--to", dest="date_to", help="Log entries to date (inclusive)")
    ap.add_argument("--timestamp", action="store_true", help="Append a timestamp to export filenames")

    ap.add_argument("--evidence", metavar="DATES", help="Evidence PDF for these days")
    ap.add_argument("--generated-by", help="Supervisor shown on the evidence document")
    ap.add_argument("--summary", action="store_true", help="Summary PDF of the dossier")
    ap.add_argument("--calendar", metavar="PNG", help="Save the month calendar image")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def print_analysis(analysis, config):
    dossier = analysis.dossier
    counts = analysis.counts
    print("=" * 70)
    print(f"DOSSIER {dossier.identifier()} - {dossier.operator.full_name or 'N/D'}")
    print("=" * 70)
    print(f"Services: {counts['services']} | Log entries: {counts['log_entries']} | "
          f"Reprimands: {counts['reprimands']} | Wristbands: {counts['wristbands']}")
    cov = analysis.coverage
    print(f"Surveys: {cov.with_survey}/{cov.total} ({cov.coverage_percent:.1f}%)")
    if analysis.rating:
        print(f"Rating: {analysis.rating.score:.1f} / 5")
    for share in analysis.status_distribution:
        print(f"  {share.status:<14} {share.percent:5.1f}%  ({share.count})")

    print(f"\nCalendar {analysis.month.strftime('%Y-%m')}: "
          f"{sum(1 for c in analysis.calendar if c.has_data)} day(s) with records")

    if analysis.streaks:
        print("\nConsecutive flights:")
        for streak in analysis.streaks:
            info = streak_summary(streak, config.streaks.highlight_run_days)
            mark = " *" if info['highlighted'] else ""
            print(f"  {info['flight_number']}: {info['days']} days {info['start']} -> {info['end']}{mark}")

    print(f"\nShifts: {analysis.short_shifts} short, {analysis.long_shifts} long")
    if analysis.alerts:
        print("\nAlerts:")
        for alert in analysis.alerts:
            print(f"  [{alert.severity.value.upper()}] {alert.message}")


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    config = DossierConfig.from_preset(args.preset)
    tz = config.temporal.reference_timezone

    try:
        if args.api_url:
            source = HTTPDossierSource(args.api_url, token=args.token)
            dossier = source.fetch_dossier(args.dossier, args.start_date, args.end_date)
        else:
            dossier = load_dossier_json(args.dossier, operator_id=args.operator_id)
        month = month_start(args.month) if args.month else None
        analysis = DossierAnalyzer(config).analyze(dossier, month=month, start_date=args.start_date)
        print_analysis(analysis, config)

        if args.export:
            dataset = ExportDataset(args.export)
            fields = ([f.strip() for f in args.fields.split(',')] if args.fields
                      else [key for key, _ in field_catalog(dataset)])
            selection = ExportSelection(
                dataset=dataset,
                fields=tuple(fields),
                format=ExportFormat(args.format),
                date_from=args.date_from,
                date_to=args.date_to,
            )
            try:
                table = format_export(dossier, selection, operator_input=args.operator_id,
                                      timestamp_suffix=args.timestamp, tz=tz)
                path = SpreadsheetWriter(args.output_dir).write(table)
                print(f"\nExport saved: {path}")
            except NoMatchingRecordsError as e:
                print(f"\n{e}")

        if args.evidence:
            renderer = ReportLabRenderer(args.output_dir, config.layout)
            try:
                layout = build_evidence_document(
                    dossier,
                    parse_date_tokens(args.evidence),
                    generated_by=args.generated_by,
                    measure_text=renderer.measure_text,
                    params=config.layout,
                    operator_input=args.operator_id,
                    tz=tz,
                )
                print(f"Evidence saved: {render_document(layout, renderer)}")
            except NoMatchingRecordsError as e:
                print(f"\n{e}")

        if args.summary:
            layout = build_summary_document(dossier, analysis, config, operator_input=args.operator_id)
            renderer = ReportLabRenderer(args.output_dir, config.layout)
            print(f"Summary saved: {render_document(layout, renderer)}")

        if args.calendar:
            DossierCalendar().plot_month(
                analysis.calendar,
                analysis.month,
                save_path=args.calendar,
                first_weekday=config.calendar.first_weekday,
                highlighted=analysis.highlighted_streaks,
            )
    except (DossierError, ValueError, OSError) as e:
        logger.error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
