"""
Tests for the spreadsheet and PDF sinks
=======================================

Run: python -m pytest tests/test_sinks.py -v
"""

from datetime import datetime
import pytest
from openpyxl import load_workbook

from core.errors import SinkError
from models.data_models import (
    ExportDataset, ExportFormat, ExportSelection, LogEntry, OperatorDossier, OperatorProfile,
    ServiceRecord,
)
from reports.document_layout import build_evidence_document, build_summary_document, render_document
from reports.export_formatter import format_export
from reports.sinks import ReportLabRenderer, SpreadsheetWriter, atomic_write

NOW = datetime(2025, 1, 2, 8, 30, 0)


def _make_dossier(n_services=2, n_entries=1):
    services = tuple(
        ServiceRecord(record_id=f"s{i}", service_date='2025-01-01', flight_number=f"AM{100 + i}",
                      status='CONCLUIDO', origin='MEX', destination='CUN')
        for i in range(n_services)
    )
    entries = tuple(
        LogEntry(record_id=f"l{i}", entry='2025-01-01T08:00', exit='2025-01-01T17:00', status='Cerrado',
                 observations='Observación larga ' * 10)
        for i in range(n_entries)
    )
    return OperatorDossier(operator=OperatorProfile(collaborator_id='10234', name='Ana'),
                           services=services, log_entries=entries)


def _table(fmt=ExportFormat.SPREADSHEET):
    selection = ExportSelection(dataset=ExportDataset.SERVICES, fields=('flight_number', 'status'), format=fmt)
    return format_export(_make_dossier(), selection, now=NOW)


class TestSpreadsheetWriter:

    def test_xlsx_written(self, tmp_path):
        path = SpreadsheetWriter(str(tmp_path)).write(_table())
        assert path.endswith('expediente-servicios-10234.xlsx')
        sheet = load_workbook(path)['Report']
        assert sheet['A1'].value == 'Collaborator: 10234'
        assert sheet['A2'].value == 'Generated: 02/01/2025 08:30:00'
        assert sheet['A4'].value == 'Flight no.'
        assert sheet['B4'].value == 'Service status'
        assert sheet['A5'].value == 'AM100'
        assert sheet['A6'].value == 'AM101'

    def test_csv_written(self, tmp_path):
        path = SpreadsheetWriter(str(tmp_path)).write(_table(ExportFormat.COMMA_SEPARATED))
        assert path.endswith('.csv')
        with open(path, encoding='utf-8') as f:
            lines = f.read().splitlines()
        assert lines[0] == 'Collaborator: 10234,'
        assert lines[3] == 'Flight no.,Service status'
        assert lines[4] == 'AM100,CONCLUIDO'

    def test_in_memory(self):
        writer = SpreadsheetWriter()
        assert writer.write(_table(ExportFormat.COMMA_SEPARATED)) == 'expediente-servicios-10234.csv'
        assert writer.content.decode('utf-8').startswith('Collaborator: 10234')

    def test_ragged_rows_padded(self):
        frame = SpreadsheetWriter.frame([['a'], [], ['b', 'c', 'd']])
        assert frame.shape == (3, 3)

    def test_unwritable_directory(self, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory')
        with pytest.raises(SinkError):
            SpreadsheetWriter(str(blocker / 'sub')).write(_table())


class TestAtomicWrite:

    def test_no_temp_files_left(self, tmp_path):
        atomic_write(tmp_path / 'out.bin', b'data')
        assert [p.name for p in tmp_path.iterdir()] == ['out.bin']
        assert (tmp_path / 'out.bin').read_bytes() == b'data'


class TestReportLabRenderer:

    def test_evidence_pdf(self, tmp_path):
        renderer = ReportLabRenderer(str(tmp_path))
        layout = build_evidence_document(_make_dossier(), ['2025-01-01'], now=NOW,
                                         measure_text=renderer.measure_text)
        path = render_document(layout, renderer)
        assert path.endswith('evidencia-10234.pdf')
        assert (tmp_path / 'evidencia-10234.pdf').read_bytes().startswith(b'%PDF')
        assert renderer.pages == layout.page_count

    def test_multi_page_evidence(self):
        renderer = ReportLabRenderer()
        layout = build_evidence_document(_make_dossier(n_services=30), ['2025-01-01'], now=NOW,
                                         measure_text=renderer.measure_text)
        assert render_document(layout, renderer) == 'evidencia-10234.pdf'
        assert layout.page_count > 1
        assert renderer.pages == layout.page_count
        assert renderer.content.startswith(b'%PDF')

    def test_summary_sections_paginate(self):
        renderer = ReportLabRenderer()
        layout = build_summary_document(_make_dossier(n_entries=80), now=NOW)
        render_document(layout, renderer)
        assert renderer.pages > 1
        assert renderer.content.startswith(b'%PDF')

    def test_measure_text_wraps_to_width(self):
        lines = ReportLabRenderer().measure_text('palabra ' * 60, 80)
        assert len(lines) > 1

    def test_save_failure(self, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory')
        renderer = ReportLabRenderer(str(blocker / 'sub'))
        layout = build_summary_document(_make_dossier(), now=NOW)
        with pytest.raises(SinkError):
            render_document(layout, renderer)
