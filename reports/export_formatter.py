"""
Export Formatter
================

Builds the rectangular row-set written by the spreadsheet sink:

    Collaborator: <id>
    Generated: <timestamp>
    <blank>
    <field labels>
    <one row per record>

Values are resolved per field key. ``hoursWorked`` is computed from the
entry/exit pair; dotted keys ("survey.rating") walk nested mappings and
yield "" as soon as a segment is missing. The output format only changes
how the sink serializes the rows.
"""

from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple
import logging

from models.data_models import (
    ExportDataset, ExportFormat, ExportSelection, ExportTable, LogEntry, OperatorDossier,
)
from core.errors import EmptyFieldSelectionError, NoMatchingRecordsError, ValidationError
from core.temporal import (
    day_key, format_timestamp, hours_worked, now_local, parse_instant, timestamp_token,
)

logger = logging.getLogger(__name__)

HOURS_WORKED_KEY = 'hoursWorked'
SHEET_NAME = 'Report'
FILE_ENTITY = 'expediente'

# (key, label) in display order
SERVICE_FIELDS: Tuple[Tuple[str, str], ...] = (
    ('service_date', 'Service date'),
    ('start_time', 'Start time'),
    ('end_time', 'End time'),
    ('status', 'Service status'),
    ('airline', 'Airline'),
    ('flight_number', 'Flight no.'),
    ('origin', 'Origin'),
    ('destination', 'Destination'),
    ('service_type', 'Service type'),
    ('seat_type', 'Seat type'),
    ('pnr', 'PNR'),
    ('int_nac', 'International/Domestic'),
    ('usuarioInicio', 'Started by'),
    ('noColaborador', 'Collaborator no.'),
    ('station', 'Station'),
    ('conexion', 'Connection'),
    ('noMostrador', 'Counter'),
    ('sala', 'Gate room'),
    ('uh', 'UH'),
    ('created_at', 'Created at'),
    ('updated_at', 'Updated at'),
    ('survey.rating', 'Survey rating'),
    ('survey.agent', 'Survey agent'),
    ('survey.comments', 'Survey comments'),
)

LOG_ENTRY_FIELDS: Tuple[Tuple[str, str], ...] = (
    ('registered_at', 'Registered at'),
    ('entry', 'Entry'),
    ('exit', 'Exit'),
    (HOURS_WORKED_KEY, 'Hours worked'),
    ('status', 'Status'),
    ('seat', 'Seat'),
    ('recorded_by', 'Recorded by'),
    ('observations', 'Observations'),
    ('station', 'Station'),
    ('collaborator_id', 'Collaborator no.'),
)


def field_catalog(dataset: ExportDataset) -> Tuple[Tuple[str, str], ...]:
    return SERVICE_FIELDS if dataset is ExportDataset.SERVICES else LOG_ENTRY_FIELDS


def field_label(dataset: ExportDataset, key: str) -> str:
    for catalog_key, label in field_catalog(dataset):
        if catalog_key == key:
            return label
    return key


def resolve_field(data: Any, path: str) -> Any:
    """
    Nested lookup of a dotted path over mappings.

    Short-circuits to "" on any missing or null segment.
    """
    head, _, rest = path.partition('.')
    if not isinstance(data, Mapping):
        return ''
    value = data.get(head)
    if value is None:
        return ''
    if not rest:
        return value
    return resolve_field(value, rest)


def _cell(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple, dict)):
        return str(value)
    return value


def field_value(record: Any, key: str, tz: Optional[str] = None) -> Any:
    """Value of one export column for a service or log entry"""
    if key == HOURS_WORKED_KEY:
        hours = hours_worked(getattr(record, 'entry', None), getattr(record, 'exit', None), tz)
        return f"{hours:.2f}" if hours is not None else ''
    return _cell(resolve_field(record.to_dict(), key))


def _in_range(entry: LogEntry, start_key: Optional[str], end_key: Optional[str], tz: Optional[str]) -> bool:
    """Inclusive local-day comparison; entries without a usable date are kept"""
    key = day_key(parse_instant(entry.effective_date, tz))
    if key is None:
        return True
    if start_key and key < start_key:
        return False
    if end_key and key > end_key:
        return False
    return True


def _bound(raw: Optional[str], name: str, tz: Optional[str]) -> Optional[str]:
    if not raw:
        return None
    key = day_key(parse_instant(raw, tz))
    if key is None:
        raise ValidationError(f"Invalid {name} date: {raw!r}")
    return key


def select_records(dossier: OperatorDossier, selection: ExportSelection, tz: Optional[str] = None) -> List[Any]:
    if selection.dataset is ExportDataset.SERVICES:
        return list(dossier.services)
    start_key = _bound(selection.date_from, 'start', tz)
    end_key = _bound(selection.date_to, 'end', tz)
    return [e for e in dossier.log_entries if _in_range(e, start_key, end_key, tz)]


def export_filename(
    dossier: OperatorDossier,
    dataset: ExportDataset,
    fmt: ExportFormat,
    operator_input: Optional[str] = None,
    stamp: Optional[datetime] = None,
) -> str:
    """expediente-<dataset>-<id>[-<timestamp>].<ext>"""
    base = f"{FILE_ENTITY}-{dataset.file_token}-{dossier.identifier(operator_input)}"
    if stamp is not None:
        base = f"{base}-{timestamp_token(stamp)}"
    return f"{base}{fmt.extension}"


def format_export(
    dossier: OperatorDossier,
    selection: ExportSelection,
    now: Optional[datetime] = None,
    operator_input: Optional[str] = None,
    timestamp_suffix: bool = False,
    tz: Optional[str] = None,
) -> ExportTable:
    """
    Build the export row-set for a dataset selection.

    Raises:
        EmptyFieldSelectionError: no field selected
        NoMatchingRecordsError: the dataset (after the date range) is empty
    """
    fields: Sequence[str] = [f for f in selection.fields if f]
    if not fields:
        raise EmptyFieldSelectionError("Select at least one field to export.")

    records = select_records(dossier, selection, tz)
    if not records:
        raise NoMatchingRecordsError("No records to export with the selected filters.")

    generated_at = now or now_local()
    rows: List[List[Any]] = [
        [f"Collaborator: {dossier.identifier(operator_input)}"],
        [f"Generated: {format_timestamp(generated_at)}"],
        [],
        [field_label(selection.dataset, key) for key in fields],
    ]
    for record in records:
        rows.append([field_value(record, key, tz) for key in fields])

    filename = export_filename(
        dossier,
        selection.dataset,
        selection.format,
        operator_input,
        stamp=generated_at if timestamp_suffix else None,
    )
    logger.info(f"Export {filename}: {len(records)} {selection.dataset.value} row(s), {len(fields)} field(s)")

    return ExportTable(
        rows=rows,
        sheet_name=SHEET_NAME,
        filename=filename,
        format=selection.format,
        record_count=len(records),
    )
