# dossier_calendar.py - Month calendar of an operator dossier
# ============================================================

"""
Month calendar image built from the calendar grid.

Features:
- Leading/trailing blank cells follow the configured first weekday
- Services per day (upstream daily total when known)
- Reprimand markers
- Days that belong to a highlighted flight streak get an accent border
- Dark/Light theme support
"""

import matplotlib.pyplot as plt
import matplotlib.patches as mpatches
from matplotlib.gridspec import GridSpec
from datetime import date
from typing import Iterable, List, Optional, Sequence
import logging

from models.data_models import CalendarDayCell, FlightStreak
from core.parameters import SUNDAY
from core.temporal import key_to_date

logger = logging.getLogger(__name__)

DAY_NAMES = ['Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun']


def weekday_labels(first_weekday: int = SUNDAY) -> List[str]:
    """Column headers starting at ``first_weekday`` (0 = Monday)"""
    return [DAY_NAMES[(first_weekday + i) % 7] for i in range(7)]


def streak_day_keys(streaks: Iterable[FlightStreak]) -> set:
    keys = set()
    for streak in streaks:
        start = key_to_date(streak.start_key)
        for offset in range(streak.length):
            keys.add(date.fromordinal(start.toordinal() + offset).isoformat())
    return keys


class DossierCalendar:
    """
    Month calendar for one operator dossier
    """

    def __init__(self, theme='light'):
        self.theme = theme

        if theme == 'dark':
            self.bg_color = '#0f172a'
            self.text_color = '#e2e8f0'
            self.grid_color = '#475569'
            self.blank_color = '#1a2037'
        else:
            self.bg_color = '#ffffff'
            self.text_color = '#000000'
            self.grid_color = '#cccccc'
            self.blank_color = '#f5f5f5'

        self.colors = {
            'services': '#3b82f6',
            'reprimand': '#f87171',
            'streak': '#7c3aed',
        }

    def plot_month(
        self,
        grid: Sequence[CalendarDayCell],
        month: date,
        title: str = '',
        save_path: Optional[str] = None,
        first_weekday: int = SUNDAY,
        highlighted: Iterable[FlightStreak] = (),
    ):
        """
        Draw the grid (length multiple of 7) week by week
        """
        num_weeks = max(len(grid) // 7, 1)
        streak_keys = streak_day_keys(highlighted)
        labels = weekday_labels(first_weekday)

        fig = plt.figure(figsize=(14, num_weeks * 2.0 + 1))
        fig.patch.set_facecolor(self.bg_color)
        gs = GridSpec(num_weeks, 7, hspace=0.08, wspace=0.08)

        for index, cell in enumerate(grid):
            week, column = divmod(index, 7)
            ax = fig.add_subplot(gs[week, column])
            ax.set_xticks([])
            ax.set_yticks([])
            ax.set_xlim(0, 1)
            ax.set_ylim(0, 1)

            in_streak = cell.day_key in streak_keys
            for spine in ax.spines.values():
                spine.set_edgecolor(self.colors['streak'] if in_streak else self.grid_color)
                spine.set_linewidth(2.5 if in_streak else 1)

            if week == 0:
                ax.set_title(labels[column], fontsize=9, color=self.text_color)

            if cell.is_blank:
                ax.set_facecolor(self.blank_color)
                continue
            ax.set_facecolor(self.bg_color)

            ax.text(0.06, 0.92, cell.label, fontsize=12, fontweight='bold',
                    color=self.text_color, va='top', ha='left')

            if cell.total_services:
                bar = mpatches.FancyBboxPatch(
                    (0.08, 0.38), 0.84, 0.2,
                    boxstyle="round,pad=0.01",
                    facecolor=self.colors['services'],
                    edgecolor='none',
                    alpha=0.85,
                )
                ax.add_patch(bar)
                ax.text(0.5, 0.48, f"{cell.total_services} svc", fontsize=8,
                        fontweight='bold', color='white', ha='center', va='center')

            if cell.reprimands:
                ax.text(0.5, 0.16, f"{len(cell.reprimands)} reprimand(s)", fontsize=7,
                        color=self.colors['reprimand'], ha='center', va='center')

        fig.suptitle(
            title or month.strftime('%B %Y'),
            fontsize=15,
            fontweight='bold',
            color=self.text_color,
        )

        legend_elements = [
            mpatches.Patch(color=self.colors['services'], label='Services'),
            mpatches.Patch(color=self.colors['reprimand'], label='Reprimands'),
            mpatches.Patch(color=self.colors['streak'], label='Consecutive flight'),
        ]
        fig.legend(
            handles=legend_elements,
            loc='lower center',
            ncol=3,
            fontsize=9,
            frameon=True,
            facecolor=self.bg_color,
            edgecolor=self.grid_color,
        )
        plt.subplots_adjust(top=0.9, bottom=0.08)

        if save_path:
            plt.savefig(save_path, dpi=150, bbox_inches='tight', facecolor=self.bg_color)
            logger.info(f"Calendar saved: {save_path}")
        else:
            plt.show()

        plt.close(fig)
