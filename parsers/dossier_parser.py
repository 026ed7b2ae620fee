# dossier_parser.py - Operator dossier payload parser

"""
Dossier Parser - Convert the upstream dossier payload into OperatorDossier

Upstream payload (GET api/operadores/{noColaborador}/expediente):
- operador: {nombre, apellidos, siglas, estacion, noColaborador}
- servicios: {registros: [...], resumenPorDia: [{fecha, total}], total}
- bitacora: {registros: [...], resumenDiario: [...], total}
- amonestaciones: [...]
- pulseras: [...]

Fetching is done elsewhere; this module only maps an already-fetched
payload. Keys the model does not name are kept in each record's ``extras``
so they stay exportable.
"""

from pathlib import Path
from urllib.parse import quote
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Tuple
import json
import logging

import requests

from models.data_models import (
    LogEntry, OperatorDossier, OperatorProfile, ReprimandRecord, ServiceRecord, SurveyResult,
)
from core.aggregation import daily_totals_from_summary
from core.errors import FetchError, ValidationError

logger = logging.getLogger(__name__)


# ============================================================================
# FIELD MAPS (upstream key -> model attribute)
# ============================================================================

SERVICE_KEYS = {
    '_id': 'record_id',
    'fechaInput': 'service_date',
    'horaInicio': 'start_time',
    'horaFin': 'end_time',
    'noVuelo': 'flight_number',
    'origenVuelo': 'origin',
    'destinoVuelo': 'destination',
    'tipoService': 'service_type',
    'tipoSilla': 'seat_type',
    'statusServicio': 'status',
    'pnr': 'pnr',
    'aerolinea': 'airline',
    'estacion': 'station',
}

SURVEY_KEYS = {
    'calificacion': 'rating',
    'agente': 'agent',
    'comentarios': 'comments',
    'firmaPasajero': 'passenger_signature',
}

LOG_ENTRY_KEYS = {
    '_id': 'record_id',
    'entrada': 'entry',
    'salida': 'exit',
    'fecha_registro': 'registered_at',
    'status': 'status',
    'noSilla': 'seat',
    'observaciones': 'observations',
    'register_by': 'recorded_by',
    'estacion': 'station',
    'noColaborador': 'collaborator_id',
}

REPRIMAND_KEYS = {
    '_id': 'record_id',
    'fechaInput': 'date',
    'sancion': 'sanction',
    'motivo': 'reason',
    'registradoPor': 'recorded_by',
    'noColaborador': 'sanctioned_collaborator_id',
}

# Scalar-ish values are stringified; everything else is kept verbatim
_TEXT_TYPES = (str, int, float)


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, _TEXT_TYPES):
        return str(value)
    return None


def _split(raw: Mapping[str, Any], key_map: Mapping[str, str], nested: Tuple[str, ...] = ()) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Separate mapped attributes from extras"""
    known: Dict[str, Any] = {}
    extras: Dict[str, Any] = {}
    for key, value in raw.items():
        if key in key_map:
            known[key_map[key]] = _text(value)
        elif key not in nested:
            extras[key] = value
    return known, extras


def _records(items: Any, kind: str) -> Iterable[Mapping[str, Any]]:
    if not items:
        return []
    if not isinstance(items, list):
        logger.warning(f"Ignoring {kind}: expected a list, got {type(items).__name__}")
        return []
    valid = [item for item in items if isinstance(item, Mapping)]
    if len(valid) != len(items):
        logger.warning(f"Skipped {len(items) - len(valid)} malformed {kind} record(s)")
    return valid


def parse_survey(raw: Any) -> Optional[SurveyResult]:
    if not isinstance(raw, Mapping):
        return None
    known, _ = _split(raw, SURVEY_KEYS)
    return SurveyResult(**known)


def parse_service(raw: Mapping[str, Any]) -> ServiceRecord:
    known, extras = _split(raw, SERVICE_KEYS, nested=('encuesta',))
    known.setdefault('record_id', None)
    known.setdefault('service_date', None)
    return ServiceRecord(survey=parse_survey(raw.get('encuesta')), extras=extras, **known)


def parse_log_entry(raw: Mapping[str, Any]) -> LogEntry:
    known, extras = _split(raw, LOG_ENTRY_KEYS)
    known.setdefault('record_id', None)
    return LogEntry(extras=extras, **known)


def parse_reprimand(raw: Mapping[str, Any]) -> ReprimandRecord:
    known, extras = _split(raw, REPRIMAND_KEYS)
    known.setdefault('record_id', None)
    known.setdefault('date', None)
    return ReprimandRecord(extras=extras, **known)


def parse_operator(raw: Any, fallback_id: Optional[str] = None) -> OperatorProfile:
    raw = raw if isinstance(raw, Mapping) else {}
    return OperatorProfile(
        collaborator_id=_text(raw.get('noColaborador')) or fallback_id,
        name=_text(raw.get('nombre')),
        surnames=_text(raw.get('apellidos')),
        initials=_text(raw.get('siglas')),
        station=_text(raw.get('estacion')),
    )


def _total(section: Mapping[str, Any]) -> Optional[int]:
    value = section.get('total')
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid upstream total ignored: {value!r}")
        return None


def parse_dossier(payload: Any, operator_id: Optional[str] = None) -> OperatorDossier:
    """
    Map an upstream dossier payload to an OperatorDossier.

    Args:
        payload: decoded JSON body
        operator_id: id typed by the user, used when the payload has none

    Raises:
        ValidationError: payload is not a JSON object
    """
    if not isinstance(payload, Mapping):
        raise ValidationError("Dossier payload must be a JSON object")

    servicios = payload.get('servicios') if isinstance(payload.get('servicios'), Mapping) else {}
    bitacora = payload.get('bitacora') if isinstance(payload.get('bitacora'), Mapping) else {}

    services = tuple(parse_service(r) for r in _records(servicios.get('registros'), 'service'))
    log_entries = tuple(parse_log_entry(r) for r in _records(bitacora.get('registros'), 'log entry'))
    reprimands = tuple(parse_reprimand(r) for r in _records(payload.get('amonestaciones'), 'reprimand'))
    wristbands = tuple(dict(r) for r in _records(payload.get('pulseras'), 'wristband'))

    summary = servicios.get('resumenPorDia')
    daily_totals = daily_totals_from_summary(summary if isinstance(summary, list) else [])
    log_summary = bitacora.get('resumenDiario')
    log_daily_totals = daily_totals_from_summary(log_summary if isinstance(log_summary, list) else [])

    dossier = OperatorDossier(
        operator=parse_operator(payload.get('operador'), operator_id),
        services=services,
        log_entries=log_entries,
        reprimands=reprimands,
        daily_totals=daily_totals,
        log_daily_totals=log_daily_totals,
        wristbands=wristbands,
        service_total=_total(servicios),
        log_total=_total(bitacora),
    )
    logger.info(
        f"Parsed dossier {dossier.identifier(operator_id)}: {len(services)} services, "
        f"{len(log_entries)} log entries, {len(reprimands)} reprimands"
    )
    return dossier


# ============================================================================
# DOSSIER SOURCES
# ============================================================================

class DossierSource(Protocol):
    """Collaborator that fetches a raw dossier (HTTP client, file store...)"""

    def fetch_dossier(self, operator_id: str, start_date: Optional[str] = None,
                      end_date: Optional[str] = None) -> OperatorDossier:
        ...


class JSONDossierSource:
    """
    Reads ``<operator_id>.json`` payloads saved from the dossier endpoint.

    The date range is forwarded by the HTTP source to the server; saved
    payloads are already range-filtered, so it is ignored here.
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def fetch_dossier(self, operator_id: str, start_date: Optional[str] = None,
                      end_date: Optional[str] = None) -> OperatorDossier:
        if not operator_id or not str(operator_id).strip():
            raise ValidationError("A collaborator number is required")
        path = self.directory / f"{str(operator_id).strip()}.json"
        return load_dossier_json(path, operator_id=str(operator_id).strip())


def load_dossier_json(path, operator_id: Optional[str] = None) -> OperatorDossier:
    """Parse a dossier payload saved as JSON"""
    with open(path, 'r', encoding='utf-8') as f:
        payload = json.load(f)
    return parse_dossier(payload, operator_id=operator_id)


class HTTPDossierSource:
    """
    Fetches ``api/operadores/{noColaborador}/expediente`` with an optional
    bearer token and fechaInicio/fechaFin range.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {'Authorization': f"Bearer {self.token}"} if self.token else {}

    def fetch_dossier(self, operator_id: str, start_date: Optional[str] = None,
                      end_date: Optional[str] = None) -> OperatorDossier:
        if not operator_id or not str(operator_id).strip():
            raise ValidationError("A collaborator number is required")
        operator_id = str(operator_id).strip()

        params = {}
        if start_date:
            params['fechaInicio'] = start_date
        if end_date:
            params['fechaFin'] = end_date

        url = f"{self.base_url}/api/operadores/{quote(operator_id, safe='')}/expediente"
        try:
            response = self.session.get(url, params=params, headers=self._headers(), timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise FetchError(f"Could not fetch dossier {operator_id}: {e}") from e
        except ValueError as e:
            raise FetchError(f"Dossier {operator_id} is not valid JSON: {e}") from e

        logger.info(f"Fetched dossier {operator_id} ({params or 'full range'})")
        return parse_dossier(payload, operator_id=operator_id)
