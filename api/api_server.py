"""
api_server.py - FastAPI Backend for Operator Dossier Analytics
==============================================================

RESTful API exposing the dossier analytics to the frontend. Every request
carries the already-fetched dossier payload; nothing is stored between
calls.

Endpoints:
- POST /api/dossier/analyze - Calendar, streaks, statistics and alerts
- POST /api/dossier/export - Spreadsheet/CSV export of services or log entries
- POST /api/dossier/evidence - Evidence PDF for selected days
- POST /api/dossier/summary - Summary PDF of the whole dossier
- POST /api/visualize/calendar - Month calendar image

Usage:
    uvicorn api.api_server:app --reload --host 0.0.0.0 --port 8000
"""

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Union
from datetime import datetime
import base64
import logging
import os
import tempfile

from core import DossierAnalyzer, DossierConfig
from core.errors import NoMatchingRecordsError, SinkError, ValidationError
from core.aggregation import month_start
from core.statistics import is_system_closed
from core.streaks import streak_summary
from core.temporal import format_time
from models.data_models import (
    DossierAnalysis, ExportDataset, ExportFormat, ExportSelection, OperatorDossier,
)
from parsers.dossier_parser import parse_dossier
from reports.document_layout import (
    build_evidence_document, build_summary_document, parse_date_tokens, render_document,
)
from reports.export_formatter import format_export
from reports.sinks import ReportLabRenderer, SpreadsheetWriter
from visualization.dossier_calendar import DossierCalendar

logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP INITIALIZATION
# ============================================================================

app = FastAPI(
    title="Operator Dossier API",
    description="Calendar, streak, survey and shift analytics over operator dossiers",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

MIME_TYPES = {
    '.xlsx': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
    '.csv': 'text/csv',
    '.pdf': 'application/pdf',
}

# ============================================================================
# REQUEST/RESPONSE MODELS
# ============================================================================

class DossierRequest(BaseModel):
    payload: Dict[str, Any]            # body of GET api/operadores/{id}/expediente
    operator_id: Optional[str] = None  # collaborator number typed by the user
    config_preset: str = "default"     # "default", "strict"


class AnalyzeRequest(DossierRequest):
    month: Optional[str] = None        # Format: "2025-02"
    start_date: Optional[str] = None   # fechaInicio of the search, first calendar fallback


class ExportRequest(DossierRequest):
    dataset: str = "services"          # "services", "logEntries"
    fields: List[str] = Field(default_factory=list)
    format: str = "spreadsheet"        # "spreadsheet", "commaSeparated"
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    timestamp_suffix: bool = False


class EvidenceRequest(DossierRequest):
    dates: Union[List[str], str]       # list or free text "2025-10-25, 2025-11-11"
    generated_by: Optional[str] = None


class CalendarRequest(DossierRequest):
    month: Optional[str] = None
    start_date: Optional[str] = None
    theme: str = "light"


class AlertResponse(BaseModel):
    severity: str
    message: str


class StreakResponse(BaseModel):
    flight_number: str
    start: str
    end: str
    days: int
    origin: Optional[str] = None
    destination: Optional[str] = None
    highlighted: bool


class CalendarCellResponse(BaseModel):
    date: Optional[str] = None         # None for padding cells
    label: str
    total_services: int
    services: int
    reprimands: int


class StatusShareResponse(BaseModel):
    status: str
    count: int
    percent: float


class LogEntryResponse(BaseModel):
    id: Optional[str] = None
    day: Optional[str] = None
    entry: Optional[str] = None
    exit: Optional[str] = None
    hours: Optional[float] = None
    shift_class: str
    status: Optional[str] = None
    system_closed: bool
    observations: Optional[str] = None


class AnalysisResponse(BaseModel):
    operator_id: str
    operator_name: str
    station: Optional[str] = None
    month: str
    counts: Dict[str, int]
    survey_total: int
    survey_with_survey: int
    survey_coverage_percent: float
    rating: Optional[float] = None
    status_distribution: List[StatusShareResponse]
    calendar: List[CalendarCellResponse]
    streaks: List[StreakResponse]
    log_entries: List[LogEntryResponse]
    alerts: List[AlertResponse]


class FileResponseModel(BaseModel):
    filename: Optional[str] = None
    mime_type: Optional[str] = None
    content: Optional[str] = None      # base64
    records: int = 0
    message: Optional[str] = None


# ============================================================================
# HELPERS
# ============================================================================

def _load(request: DossierRequest):
    config = DossierConfig.from_preset(request.config_preset)
    try:
        dossier = parse_dossier(request.payload, operator_id=request.operator_id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return dossier, config


def _analyze(dossier: OperatorDossier, config: DossierConfig, month: Optional[str],
             start_date: Optional[str] = None) -> DossierAnalysis:
    try:
        shown = month_start(month) if month else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid month: {month}")
    return DossierAnalyzer(config).analyze(dossier, month=shown, start_date=start_date)


def _mime(filename: str) -> str:
    return MIME_TYPES.get(os.path.splitext(filename)[1], 'application/octet-stream')


def _file(filename: str, data: bytes, records: int = 0) -> FileResponseModel:
    return FileResponseModel(
        filename=filename,
        mime_type=_mime(filename),
        content=base64.b64encode(data).decode(),
        records=records,
    )


def _build_analysis_response(analysis: DossierAnalysis, config: DossierConfig,
                             operator_id: Optional[str]) -> AnalysisResponse:
    dossier = analysis.dossier
    highlight = config.streaks.highlight_run_days
    return AnalysisResponse(
        operator_id=dossier.identifier(operator_id),
        operator_name=dossier.operator.full_name,
        station=dossier.operator.station,
        month=analysis.month.strftime('%Y-%m'),
        counts=analysis.counts,
        survey_total=analysis.coverage.total,
        survey_with_survey=analysis.coverage.with_survey,
        survey_coverage_percent=analysis.coverage.coverage_percent,
        rating=analysis.rating.score if analysis.rating else None,
        status_distribution=[
            StatusShareResponse(status=s.status, count=s.count, percent=s.percent)
            for s in analysis.status_distribution
        ],
        calendar=[
            CalendarCellResponse(
                date=cell.day_key,
                label=cell.label,
                total_services=cell.total_services,
                services=len(cell.services),
                reprimands=len(cell.reprimands),
            )
            for cell in analysis.calendar
        ],
        streaks=[StreakResponse(**streak_summary(s, highlight)) for s in analysis.streaks],
        log_entries=[
            LogEntryResponse(
                id=view.entry.record_id,
                day=view.day_key,
                entry=format_time(view.entry.entry) or None,
                exit=format_time(view.entry.exit) or None,
                hours=round(view.hours, 2) if view.hours is not None else None,
                shift_class=view.shift_class.value,
                status=view.entry.status,
                system_closed=is_system_closed(view.entry.status, config.alerts),
                observations=view.entry.observations,
            )
            for view in analysis.log_entries
        ],
        alerts=[AlertResponse(severity=a.severity.value, message=a.message) for a in analysis.alerts],
    )


# ============================================================================
# API ENDPOINTS
# ============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat()
    }


@app.post("/api/dossier/analyze", response_model=AnalysisResponse)
async def analyze_dossier(request: AnalyzeRequest):
    """
    Analyze a dossier payload

    Returns the month calendar, flight streaks, survey/status metrics,
    classified log entries and alerts
    """
    dossier, config = _load(request)
    analysis = _analyze(dossier, config, request.month, request.start_date)
    return _build_analysis_response(analysis, config, request.operator_id)


@app.post("/api/dossier/export", response_model=FileResponseModel)
async def export_dossier(request: ExportRequest):
    """Spreadsheet/CSV export, returned base64-encoded"""
    dossier, config = _load(request)
    try:
        selection = ExportSelection(
            dataset=ExportDataset(request.dataset),
            fields=tuple(request.fields),
            format=ExportFormat(request.format),
            date_from=request.date_from,
            date_to=request.date_to,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        table = format_export(
            dossier,
            selection,
            operator_input=request.operator_id,
            timestamp_suffix=request.timestamp_suffix,
            tz=config.temporal.reference_timezone,
        )
        writer = SpreadsheetWriter()
        writer.write(table)
    except NoMatchingRecordsError as e:
        return FileResponseModel(message=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SinkError as e:
        logger.error(f"Export failed: {e}")
        raise HTTPException(status_code=500, detail=f"Export failed: {str(e)}")

    return _file(table.filename, writer.content, table.record_count)


@app.post("/api/dossier/evidence", response_model=FileResponseModel)
async def evidence_document(request: EvidenceRequest):
    """Evidence PDF limited to the requested days"""
    dossier, config = _load(request)
    try:
        days = parse_date_tokens(request.dates) if isinstance(request.dates, str) else request.dates
        renderer = ReportLabRenderer(params=config.layout)
        layout = build_evidence_document(
            dossier,
            days,
            generated_by=request.generated_by,
            measure_text=renderer.measure_text,
            params=config.layout,
            operator_input=request.operator_id,
            tz=config.temporal.reference_timezone,
        )
        render_document(layout, renderer)
    except NoMatchingRecordsError as e:
        return FileResponseModel(message=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SinkError as e:
        logger.error(f"Evidence document failed: {e}")
        raise HTTPException(status_code=500, detail=f"Document generation failed: {str(e)}")

    return _file(layout.filename, renderer.content)


@app.post("/api/dossier/summary", response_model=FileResponseModel)
async def summary_document(request: AnalyzeRequest):
    """Summary PDF of the whole dossier"""
    dossier, config = _load(request)
    analysis = _analyze(dossier, config, request.month, request.start_date)
    try:
        layout = build_summary_document(dossier, analysis, config, operator_input=request.operator_id)
        renderer = ReportLabRenderer(params=config.layout)
        render_document(layout, renderer)
    except SinkError as e:
        logger.error(f"Summary document failed: {e}")
        raise HTTPException(status_code=500, detail=f"Document generation failed: {str(e)}")

    return _file(layout.filename, renderer.content)


@app.post("/api/visualize/calendar")
async def generate_calendar(request: CalendarRequest):
    """Generate month calendar image"""
    dossier, config = _load(request)
    analysis = _analyze(dossier, config, request.month, request.start_date)

    try:
        cal = DossierCalendar(theme=request.theme)

        with tempfile.NamedTemporaryFile(delete=False, suffix='.png') as tmp:
            cal.plot_month(
                analysis.calendar,
                analysis.month,
                title=f"{analysis.month.strftime('%B %Y')} - {dossier.identifier(request.operator_id)}",
                save_path=tmp.name,
                first_weekday=config.calendar.first_weekday,
                highlighted=analysis.highlighted_streaks,
            )

            with open(tmp.name, 'rb') as f:
                image_data = base64.b64encode(f.read()).decode()

            os.unlink(tmp.name)

        return {
            "image": f"data:image/png;base64,{image_data}",
            "format": "png"
        }

    except (OSError, ValueError) as e:
        raise HTTPException(status_code=500, detail=f"Calendar generation failed: {str(e)}")


if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", 8000))
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logger.info(f"Starting Operator Dossier API on http://localhost:{port} (docs at /docs)")

    uvicorn.run(app, host="0.0.0.0", port=port)
