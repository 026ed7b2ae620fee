"""
Tests for the export row-set builder
====================================

Run: python -m pytest tests/test_export_formatter.py -v
"""

from datetime import datetime
import pytest

from core.errors import EmptyFieldSelectionError, NoMatchingRecordsError, ValidationError
from models.data_models import (
    ExportDataset, ExportFormat, ExportSelection, LogEntry, OperatorDossier, OperatorProfile,
    ServiceRecord, SurveyResult,
)
from reports.export_formatter import (
    LOG_ENTRY_FIELDS, SERVICE_FIELDS, export_filename, field_label, field_value, format_export,
    resolve_field,
)

NOW = datetime(2025, 1, 2, 8, 30, 0)


# ── Helpers ──────────────────────────────────────────────────────────────

def _make_dossier(collaborator_id='10234'):
    services = (
        ServiceRecord(
            record_id='s1', service_date='2025-01-01', flight_number='AM100', status='CONCLUIDO',
            origin='MEX', destination='CUN',
            survey=SurveyResult(rating='EXCELENTE', agent='JPL', comments='Todo bien'),
            extras={'sala': 'B12', 'int_nac': 'NAC'},
        ),
        ServiceRecord(record_id='s2', service_date='2025-01-02', flight_number='AM101', status='EN PROCESO'),
    )
    log_entries = (
        LogEntry(record_id='l1', entry='2025-01-01T08:00', exit='2025-01-01T17:30', status='Cerrado'),
        LogEntry(record_id='l2', entry='2025-01-05T08:00', exit='2025-01-05T16:00', status='Cerrado por sistema'),
        LogEntry(record_id='l3', status='Abierto'),
    )
    return OperatorDossier(
        operator=OperatorProfile(collaborator_id=collaborator_id, name='Ana', surnames='López'),
        services=services,
        log_entries=log_entries,
    )


def _selection(dataset=ExportDataset.SERVICES, fields=('flight_number',), **kwargs):
    return ExportSelection(dataset=dataset, fields=tuple(fields), **kwargs)


# ============================================================================
# FIELD RESOLUTION
# ============================================================================

class TestResolveField:

    def test_flat_and_nested_paths(self):
        data = {'a': 1, 'survey': {'rating': 'EXCELENTE', 'meta': {'by': 'JPL'}}}
        assert resolve_field(data, 'a') == 1
        assert resolve_field(data, 'survey.rating') == 'EXCELENTE'
        assert resolve_field(data, 'survey.meta.by') == 'JPL'

    def test_missing_segments_short_circuit(self):
        data = {'survey': None, 'value': 'x'}
        assert resolve_field(data, 'survey.rating') == ''
        assert resolve_field(data, 'nothing.here') == ''
        assert resolve_field(data, 'value.deeper') == ''

    def test_labels(self):
        assert field_label(ExportDataset.SERVICES, 'flight_number') == 'Flight no.'
        assert field_label(ExportDataset.LOG_ENTRIES, 'hoursWorked') == 'Hours worked'
        assert field_label(ExportDataset.SERVICES, 'custom_key') == 'custom_key'

    def test_catalog_keys_are_unique(self):
        for catalog in (SERVICE_FIELDS, LOG_ENTRY_FIELDS):
            keys = [k for k, _ in catalog]
            assert len(keys) == len(set(keys))

    def test_hours_worked_computed(self):
        entry = LogEntry(record_id='l1', entry='2025-01-01T08:00', exit='2025-01-01T17:30')
        assert field_value(entry, 'hoursWorked') == '9.50'
        assert field_value(LogEntry(record_id='l2', entry='2025-01-01T08:00'), 'hoursWorked') == ''


# ============================================================================
# FORMAT EXPORT
# ============================================================================

class TestFormatExport:

    def test_header_rows_and_data(self):
        table = format_export(
            _make_dossier(),
            _selection(fields=('flight_number', 'status', 'survey.rating', 'sala')),
            now=NOW,
        )
        assert table.rows[0] == ['Collaborator: 10234']
        assert table.rows[1] == ['Generated: 02/01/2025 08:30:00']
        assert table.rows[2] == []
        assert table.rows[3] == ['Flight no.', 'Service status', 'Survey rating', 'Gate room']
        assert table.rows[4] == ['AM100', 'CONCLUIDO', 'EXCELENTE', 'B12']
        assert table.rows[5] == ['AM101', 'EN PROCESO', '', '']
        assert table.record_count == 2
        assert table.sheet_name == 'Report'

    def test_empty_field_selection(self):
        with pytest.raises(EmptyFieldSelectionError):
            format_export(_make_dossier(), _selection(fields=()), now=NOW)

    def test_no_rows_after_date_range(self):
        selection = _selection(ExportDataset.LOG_ENTRIES, ('entry',), date_from='2025-02-01', date_to='2025-02-28')
        # Undated entries stay in range, so remove them for this check
        dossier = _make_dossier()
        dossier = OperatorDossier(operator=dossier.operator, log_entries=dossier.log_entries[:2])
        with pytest.raises(NoMatchingRecordsError) as excinfo:
            format_export(dossier, selection, now=NOW)
        assert not isinstance(excinfo.value, EmptyFieldSelectionError)
        assert isinstance(excinfo.value, ValidationError)

    def test_log_entry_range_is_inclusive(self):
        selection = _selection(ExportDataset.LOG_ENTRIES, ('entry', 'hoursWorked', 'status'),
                               date_from='2025-01-01', date_to='2025-01-01')
        table = format_export(_make_dossier(), selection, now=NOW)
        data = table.rows[4:]
        assert data[0] == ['2025-01-01T08:00', '9.50', 'Cerrado']
        # Undated entry kept
        assert data[1] == ['', '', 'Abierto']
        assert table.record_count == 2

    def test_invalid_range_bound(self):
        selection = _selection(ExportDataset.LOG_ENTRIES, ('entry',), date_from='not a date')
        with pytest.raises(ValidationError):
            format_export(_make_dossier(), selection, now=NOW)

    def test_impossible_range_bound(self):
        selection = _selection(ExportDataset.LOG_ENTRIES, ('entry',), date_to='2025-02-30')
        with pytest.raises(ValidationError):
            format_export(_make_dossier(), selection, now=NOW)

    def test_services_ignore_date_range(self):
        selection = _selection(fields=('flight_number',), date_from='2030-01-01')
        assert format_export(_make_dossier(), selection, now=NOW).record_count == 2

    def test_deterministic(self):
        selection = _selection(fields=('flight_number', 'survey.comments'))
        first = format_export(_make_dossier(), selection, now=NOW)
        second = format_export(_make_dossier(), selection, now=NOW)
        assert first == second


class TestExportFilename:

    def test_spreadsheet_name(self):
        table = format_export(_make_dossier(), _selection(), now=NOW)
        assert table.filename == 'expediente-servicios-10234.xlsx'
        assert table.format is ExportFormat.SPREADSHEET

    def test_csv_name_with_timestamp(self):
        selection = _selection(ExportDataset.LOG_ENTRIES, ('status',), format=ExportFormat.COMMA_SEPARATED)
        table = format_export(_make_dossier(), selection, now=NOW, timestamp_suffix=True)
        assert table.filename == 'expediente-bitacora-10234-20250102T083000.csv'

    def test_identifier_fallbacks(self):
        dossier = _make_dossier(collaborator_id=None)
        assert export_filename(dossier, ExportDataset.SERVICES, ExportFormat.SPREADSHEET, '777') == \
            'expediente-servicios-777.xlsx'
        assert export_filename(dossier, ExportDataset.SERVICES, ExportFormat.SPREADSHEET) == \
            'expediente-servicios-reporte.xlsx'
