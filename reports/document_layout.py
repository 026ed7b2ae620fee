"""
Document Layout Engine
======================

Turns a dossier into an ordered list of drawable elements for a document
renderer. Two documents are produced:

- Summary document (expediente-<id>.pdf): header panel followed by one
  section element per analytics block; sections are paginated by the
  renderer.
- Evidence document (evidencia-<id>.pdf): header and summary panels, then
  two-column card grids for the services and log entries of the selected
  days. All coordinates and page breaks are decided here (A4, millimetres,
  origin at the top-left corner).

Card placement threads an explicit GridState value through
reserve_card/advance_card/close_row, so the algorithm can be tested without
any renderer.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Protocol, Sequence, Tuple
import logging
import re
import textwrap

from models.data_models import DossierAnalysis, LogEntry, OperatorDossier, ServiceRecord
from core.aggregation import log_entry_day_key
from core.analyzer import DossierAnalyzer
from core.errors import EmptyDateSelectionError, NoMatchingRecordsError, SinkError
from core.parameters import DossierConfig, LayoutParameters
from core.statistics import is_system_closed
from core.streaks import streak_summary
from core.temporal import (
    date_only_key, day_key, format_date, format_time, format_timestamp, hours_worked, now_local,
    parse_instant,
)

logger = logging.getLogger(__name__)

Color = Tuple[int, int, int]
MeasureText = Callable[[str, float], List[str]]

NOT_AVAILABLE = 'N/D'
PT_TO_MM = 0.3528


# ============================================================================
# ELEMENTS
# ============================================================================

@dataclass(frozen=True)
class TextStyle:
    font_size: float = 9.8
    bold: bool = False
    color: Color = (148, 163, 184)


@dataclass(frozen=True)
class PanelElement:
    x: float
    y: float
    width: float
    height: float
    fill: Color
    stroke: Color
    radius: float = 4.0


@dataclass(frozen=True)
class TextElement:
    text: str
    x: float
    y: float          # baseline
    style: TextStyle = TextStyle()


@dataclass(frozen=True)
class TagElement:
    """Rounded label right-aligned at ``right_x``"""
    text: str
    right_x: float
    y: float
    fill: Color
    color: Color


@dataclass(frozen=True)
class PageBreakElement:
    pass


@dataclass(frozen=True)
class SectionElement:
    """Titled block of text lines; placed and paginated by the renderer"""
    title: str
    lines: Tuple[str, ...]


@dataclass
class DocumentLayout:
    filename: str
    title: str
    elements: List[object] = field(default_factory=list)

    @property
    def page_count(self) -> int:
        return 1 + sum(1 for e in self.elements if isinstance(e, PageBreakElement))

    def of_type(self, kind) -> List[object]:
        return [e for e in self.elements if isinstance(e, kind)]


class DocumentRenderer(Protocol):
    """Primitive operations of a document sink"""

    def measure_text(self, text: str, width: float) -> List[str]: ...

    def draw_panel(self, panel: PanelElement) -> None: ...

    def draw_text(self, text: TextElement) -> None: ...

    def draw_tag(self, tag: TagElement) -> None: ...

    def draw_section(self, section: SectionElement) -> None: ...

    def add_page(self) -> None: ...

    def save(self, filename: str) -> str: ...


def approximate_wrap(text: str, width: float, font_size: float = 9.8) -> List[str]:
    """Renderer-free line wrapping (average glyph = half the font size)"""
    char_width = font_size * PT_TO_MM * 0.5
    chars = max(int(width / char_width), 1)
    return textwrap.wrap(text, width=chars) or ['']


# ============================================================================
# GRID STATE
# ============================================================================

@dataclass(frozen=True)
class GridState:
    """Running cursor of a two-column card grid"""
    y: float
    column: int = 0
    row_height: float = 0.0


def reserve_card(state: GridState, height: float, params: LayoutParameters) -> Tuple[GridState, bool]:
    """
    Make room for a card of ``height``.

    Returns the (possibly reset) state and whether a page break must be
    emitted before the card.
    """
    if state.y + height + params.card_bottom_reserve > params.usable_height:
        return GridState(y=params.top_margin), True
    return state, False


def card_x(state: GridState, params: LayoutParameters) -> float:
    return params.grid_left + state.column * (params.card_width + params.grid_gap)


def advance_card(state: GridState, height: float, params: LayoutParameters) -> GridState:
    """Move to the next column; a completed row moves the cursor down"""
    row_height = max(state.row_height, height)
    column = (state.column + 1) % 2
    if column == 0:
        return GridState(y=state.y + row_height + params.row_gap)
    return replace(state, column=column, row_height=row_height)


def close_row(state: GridState, params: LayoutParameters) -> GridState:
    """A trailing half-filled row still takes a full row height"""
    if state.column == 0:
        return state
    return GridState(y=state.y + state.row_height + params.row_gap)


def ensure_space(y: float, extra: float, params: LayoutParameters) -> Tuple[float, bool]:
    """Flow cursor check for panels and titles"""
    if y + extra > params.usable_height:
        return params.top_margin, True
    return y, False


# ============================================================================
# SHARED PIECES
# ============================================================================

def _styles(params: LayoutParameters):
    colors = params.colors
    return {
        'title': TextStyle(font_size=15, bold=True, color=colors['text']),
        'subtitle': TextStyle(font_size=11, bold=False, color=colors['text']),
        'section': TextStyle(font_size=13, bold=True, color=colors['text']),
        'label': TextStyle(font_size=10.5, bold=True, color=colors['text']),
        'value': TextStyle(font_size=10.5, bold=False, color=colors['muted']),
        'card_title': TextStyle(font_size=10.5, bold=True, color=colors['text']),
        'card_text': TextStyle(font_size=9.8, bold=False, color=colors['muted']),
    }


def _or_na(value, default: str = NOT_AVAILABLE) -> str:
    if value is None or value == '':
        return default
    return str(value)


def operator_line(dossier: OperatorDossier) -> str:
    op = dossier.operator
    return (f"Operator: {op.full_name or NOT_AVAILABLE} · Initials: {_or_na(op.initials)} · "
            f"Station: {_or_na(op.station)}")


def _panel(x: float, y: float, width: float, height: float, params: LayoutParameters) -> PanelElement:
    return PanelElement(x=x, y=y, width=width, height=height,
                        fill=params.colors['card'], stroke=params.colors['accent'])


def _full_width_panel(y: float, height: float, params: LayoutParameters) -> PanelElement:
    return _panel(params.panel_margin, y, params.page_width - 2 * params.panel_margin, height, params)


def _header(elements: List[object], y: float, title: str, dossier: OperatorDossier,
            params: LayoutParameters) -> float:
    styles = _styles(params)
    y, brk = ensure_space(y, params.header_panel_height, params)
    if brk:
        elements.append(PageBreakElement())
    elements.append(_full_width_panel(y, params.header_panel_height, params))
    elements.append(TextElement(title, params.text_margin, y + 10, styles['title']))
    elements.append(TextElement(operator_line(dossier), params.text_margin, y + 17, styles['subtitle']))
    return y + params.header_panel_height


# ============================================================================
# EVIDENCE DOCUMENT
# ============================================================================

def parse_date_tokens(text: str) -> List[str]:
    """
    Day-keys from free text ("2025-10-25, 2025-11-11").

    Raises:
        EmptyDateSelectionError: no token parses as a date
    """
    tokens = [t for t in re.split(r'[,\s]+', text or '') if t]
    keys = normalize_day_keys(tokens)
    if not keys:
        raise EmptyDateSelectionError("Enter at least one date (e.g. 2025-10-25, 2025-11-11).")
    return keys


def normalize_day_keys(values: Iterable[str], tz: Optional[str] = None) -> List[str]:
    """Parse, drop unusable values and de-duplicate keeping order"""
    keys: List[str] = []
    for value in values:
        key = day_key(parse_instant(value, tz))
        if key and key not in keys:
            keys.append(key)
    return keys


def _service_card(x: float, top: float, index: int, service: ServiceRecord,
                  params: LayoutParameters) -> List[object]:
    styles = _styles(params)
    width = params.card_width
    inner = top + 9
    elements: List[object] = [
        _panel(x, top, width, params.service_card_height, params),
        TextElement(
            f"{index}. {_or_na(date_only_key(service.service_date))} · Flight {_or_na(service.flight_number)}",
            x + 4, inner, styles['card_title'],
        ),
        TagElement(_or_na(service.status), x + width - 2, inner,
                   fill=params.colors['accent2'], color=params.colors['white']),
    ]
    inner += 6
    elements.append(TextElement(
        f"{_or_na(service.service_type)} · PNR: {_or_na(service.pnr)} · Seat: {_or_na(service.seat_type)}",
        x + 4, inner, styles['card_text'],
    ))
    inner += 5
    elements.append(TextElement(
        f"Route: {_or_na(service.origin)} -> {_or_na(service.destination)}",
        x + 4, inner, styles['card_text'],
    ))
    inner += 5
    elements.append(TextElement(
        f"Schedule: {_or_na(format_time(service.start_time))} - {_or_na(format_time(service.end_time))}"
        f" · Station: {_or_na(service.station)}",
        x + 4, inner, styles['card_text'],
    ))
    return elements


def log_card_height(observation_lines: Sequence[str], params: LayoutParameters) -> float:
    return params.log_card_base_height + len(observation_lines) * params.observation_line_height


def _log_card(x: float, top: float, index: int, entry: LogEntry, obs_lines: Sequence[str],
              hours: Optional[float], params: LayoutParameters) -> List[object]:
    styles = _styles(params)
    width = params.card_width
    inner = top + 9
    tag_fill = params.colors['alert'] if is_system_closed(entry.status) else params.colors['accent']
    elements: List[object] = [
        _panel(x, top, width, log_card_height(obs_lines, params), params),
        TextElement(f"{index}. {_or_na(format_date(entry.effective_date))}", x + 4, inner, styles['card_title']),
        TagElement(_or_na(entry.status, 'N/A'), x + width - 2, inner,
                   fill=tag_fill, color=params.colors['white']),
    ]
    inner += 6
    hours_text = f"{hours:.2f} h" if hours is not None else NOT_AVAILABLE
    elements.append(TextElement(
        f"Entry: {_or_na(entry.entry)} · Exit: {_or_na(entry.exit)} · Hours: {hours_text}",
        x + 4, inner, styles['card_text'],
    ))
    inner += 5
    elements.append(TextElement(
        f"Seat: {_or_na(entry.seat, 'N/A')} · Recorded by: {_or_na(entry.recorded_by, 'N/A')}"
        f" · Station: {_or_na(entry.station)}",
        x + 4, inner, styles['card_text'],
    ))
    inner += 5
    for line in obs_lines:
        elements.append(TextElement(line, x + 4, inner, styles['card_text']))
        inner += params.observation_line_height
    return elements


def _section_title(elements: List[object], y: float, title: str, params: LayoutParameters) -> float:
    y, brk = ensure_space(y, params.section_title_height, params)
    if brk:
        elements.append(PageBreakElement())
    elements.append(TextElement(title, params.grid_left, y, _styles(params)['section']))
    return y


def _place(elements: List[object], grid: GridState, height: float,
           params: LayoutParameters) -> GridState:
    grid, brk = reserve_card(grid, height, params)
    if brk:
        elements.append(PageBreakElement())
    return grid


def build_evidence_document(
    dossier: OperatorDossier,
    selected_day_keys: Sequence[str],
    generated_by: Optional[str] = None,
    now: Optional[datetime] = None,
    measure_text: Optional[MeasureText] = None,
    params: LayoutParameters = None,
    operator_input: Optional[str] = None,
    tz: Optional[str] = None,
) -> DocumentLayout:
    """
    Evidence document limited to the selected days.

    Raises:
        EmptyDateSelectionError: no usable day was selected
        NoMatchingRecordsError: no service or log entry falls on those days
            (non-fatal: nothing is produced)
    """
    params = params or LayoutParameters()
    measure = measure_text or approximate_wrap
    keys = normalize_day_keys(selected_day_keys, tz)
    if not keys:
        raise EmptyDateSelectionError("Enter at least one date (e.g. 2025-10-25, 2025-11-11).")
    wanted = set(keys)

    services = [s for s in dossier.services if date_only_key(s.service_date) in wanted]
    entries = [e for e in dossier.log_entries if log_entry_day_key(e, tz) in wanted]
    if not services and not entries:
        raise NoMatchingRecordsError("No records on the selected dates.")

    styles = _styles(params)
    generated_at = now or now_local()
    elements: List[object] = []

    y = _header(elements, params.top_margin, 'Worked days evidence', dossier, params)

    # Summary panel
    y, brk = ensure_space(y, params.summary_panel_height, params)
    if brk:
        elements.append(PageBreakElement())
    summary_top = y
    elements.append(_full_width_panel(summary_top, params.summary_panel_height, params))
    line_y = summary_top + 10
    summary_rows = (
        ('Collaborator no.', dossier.identifier(operator_input)),
        ('Requested dates', ', '.join(keys)),
        ('Generated by', _or_na(generated_by)),
        ('Generated at', format_timestamp(generated_at)),
        ('Services on dates', str(len(services))),
        ('Log entries on dates', str(len(entries))),
    )
    for label, value in summary_rows:
        elements.append(TextElement(label, params.text_margin, line_y, styles['label']))
        elements.append(TextElement(value or NOT_AVAILABLE, params.text_margin + 40, line_y, styles['value']))
        line_y += params.line_height
    y = summary_top + params.summary_panel_height + 6

    if services:
        y = _section_title(elements, y, 'Services', params)
        grid = GridState(y=y + 4)
        for idx, service in enumerate(services, start=1):
            height = params.service_card_height
            grid = _place(elements, grid, height, params)
            elements.extend(_service_card(card_x(grid, params), grid.y, idx, service, params))
            grid = advance_card(grid, height, params)
        grid = close_row(grid, params)
        y = grid.y + 6

    if entries:
        y = _section_title(elements, y, 'Shift log', params)
        grid = GridState(y=y + 4)
        for idx, entry in enumerate(entries, start=1):
            obs_lines = (measure(f"Obs: {entry.observations}", params.card_width - 10)
                         if entry.observations else [])
            height = log_card_height(obs_lines, params)
            grid = _place(elements, grid, height, params)
            hours = hours_worked(entry.entry, entry.exit, tz)
            elements.extend(_log_card(card_x(grid, params), grid.y, idx, entry, obs_lines, hours, params))
            grid = advance_card(grid, height, params)
        grid = close_row(grid, params)

    layout = DocumentLayout(
        filename=f"evidencia-{dossier.identifier(operator_input)}.pdf",
        title='Worked days evidence',
        elements=elements,
    )
    logger.info(
        f"Evidence layout {layout.filename}: {len(services)} services, {len(entries)} log entries, "
        f"{layout.page_count} page(s)"
    )
    return layout


# ============================================================================
# SUMMARY DOCUMENT
# ============================================================================

def _summary_sections(analysis: DossierAnalysis, generated_at: datetime, config: DossierConfig,
                      operator_input: Optional[str]) -> List[SectionElement]:
    dossier = analysis.dossier
    counts = analysis.counts
    sections: List[SectionElement] = []

    sections.append(SectionElement('Summary', (
        f"Collaborator #{dossier.identifier(operator_input)} · Station {_or_na(dossier.operator.station)}",
        f"Services: {counts['services']} · Log entries: {counts['log_entries']} · "
        f"Reprimands: {counts['reprimands']} · Wristbands: {counts['wristbands']}",
        f"Generated at: {format_timestamp(generated_at)}",
    )))

    coverage = analysis.coverage
    survey_lines: List[str] = []
    if coverage.total:
        survey_lines.append(
            f"Surveys: {coverage.with_survey}/{coverage.total} ({coverage.coverage_percent:.1f}%)")
        if coverage.coverage_percent < config.alerts.survey_coverage_min_percent:
            survey_lines.append("Attention: request the survey when the service ends.")
        else:
            survey_lines.append("Healthy coverage.")
    if analysis.rating:
        survey_lines.append(
            f"Rating: {analysis.rating.score:.1f} / 5 "
            f"({analysis.rating.excellent}/{analysis.rating.total} excellent)")
    sections.append(SectionElement('Surveys', tuple(survey_lines) or ('No services.',)))

    sections.append(SectionElement('Service status', tuple(
        f"{share.status}: {share.percent:.1f}% · {share.count}" for share in analysis.status_distribution
    ) or ('No services.',)))

    sections.append(SectionElement('Alerts', tuple(
        f"[{alert.severity.value.upper()}] {alert.message}" for alert in analysis.alerts
    ) or ('No alerts.',)))

    streak_lines = []
    for streak in analysis.streaks:
        info = streak_summary(streak, config.streaks.highlight_run_days)
        badge = f" [{config.streaks.highlight_run_days}+ in a row]" if info['highlighted'] else ''
        streak_lines.append(
            f"Flight {streak.flight_number} · {_or_na(streak.origin)} -> {_or_na(streak.destination)} · "
            f"{streak.length} consecutive days · {format_date(streak.start_key)} to "
            f"{format_date(streak.end_key)}{badge}")
    sections.append(SectionElement('Consecutive flights', tuple(streak_lines) or ('No consecutive flights.',)))

    log_lines = []
    for view in analysis.log_entries:
        entry = view.entry
        hours = f"{view.hours:.2f} h" if view.hours is not None else NOT_AVAILABLE
        badge = '' if view.shift_class.value in ('normal', 'unknown') else f" ({view.shift_class.value})"
        log_lines.append(
            f"{_or_na(format_date(entry.effective_date))} · Entry {_or_na(entry.entry)} · "
            f"Exit {_or_na(entry.exit)} · {hours}{badge} · {_or_na(entry.status, 'N/A')}")
    sections.append(SectionElement('Shift log', tuple(log_lines) or ('No log entries in the requested range.',)))

    reprimand_lines = tuple(
        f"{_or_na(format_date(r.date))} · {_or_na(r.sanction)} · {_or_na(r.reason)}"
        for r in dossier.reprimands
    )
    sections.append(SectionElement('Reprimands', reprimand_lines or ('No reprimands.',)))
    return sections


def build_summary_document(
    dossier: OperatorDossier,
    analysis: Optional[DossierAnalysis] = None,
    config: DossierConfig = None,
    now: Optional[datetime] = None,
    operator_input: Optional[str] = None,
) -> DocumentLayout:
    """Header panel followed by one section element per analytics block"""
    config = config or DossierConfig.default_config()
    generated_at = now or now_local()
    if analysis is None:
        analysis = DossierAnalyzer(config).analyze(dossier, now=generated_at)

    elements: List[object] = []
    _header(elements, config.layout.top_margin, 'Operator dossier', dossier, config.layout)
    elements.extend(_summary_sections(analysis, generated_at, config, operator_input))

    return DocumentLayout(
        filename=f"expediente-{dossier.identifier(operator_input)}.pdf",
        title='Operator dossier',
        elements=elements,
    )


# ============================================================================
# RENDERING
# ============================================================================

def render_document(layout: DocumentLayout, renderer: DocumentRenderer, filename: Optional[str] = None) -> str:
    """
    Replay layout elements on a renderer, in order, then save.

    Raises:
        SinkError: the renderer failed; nothing is finalized
    """
    handlers = {
        PanelElement: renderer.draw_panel,
        TextElement: renderer.draw_text,
        TagElement: renderer.draw_tag,
        SectionElement: renderer.draw_section,
    }
    try:
        for element in layout.elements:
            if isinstance(element, PageBreakElement):
                renderer.add_page()
                continue
            handlers[type(element)](element)
        path = renderer.save(filename or layout.filename)
    except SinkError:
        raise
    except Exception as e:
        raise SinkError(f"Document rendering failed: {e}") from e
    logger.info(f"Document saved: {path}")
    return path
