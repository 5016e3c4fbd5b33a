# src/thawpond_flux/viz.py
"""
Module: viz.py
Responsibilities:
- Publication style settings shared by every figure
- Boxplots of polygon areas and fill ratios by group with Kruskal-Wallis
  annotation and post-hoc letters
- Window-variant comparison bars, fixed-wing vs quadcopter scatter,
  flux vs water area scatter
- Daily flux time series with the centered rolling median
"""
import logging
import os
from typing import Dict, Optional

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from thawpond_flux.data_io import POND_DEPRESSION, WATER
from thawpond_flux.stats_tests import CorrelationResult, KruskalResult

# Configure logging
logging.basicConfig(level=logging.INFO,
                   format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# Standard figure sizes (in inches)
FIG_SIZES = {
    'small': (6, 4),
    'medium': (8, 6),
    'wide': (12, 6),
    'tall': (8, 10),
    'square': (6, 6),
}

AREA_LABEL = r'Area (m$^2$)'
FLUX_LABEL = r'8-day centered median flux (mg CH$_4$ m$^{-2}$ d$^{-1}$)'


def set_publication_style():
    """Set matplotlib parameters for publication-quality figures."""
    plt.style.use('seaborn-v0_8-whitegrid')
    plt.rcParams['figure.figsize'] = FIG_SIZES['medium']
    plt.rcParams['figure.dpi'] = 100
    plt.rcParams['savefig.dpi'] = 300
    plt.rcParams['font.family'] = 'sans-serif'
    plt.rcParams['font.sans-serif'] = ['Arial', 'Helvetica', 'DejaVu Sans']
    plt.rcParams['font.size'] = 11
    plt.rcParams['axes.titlesize'] = 12
    plt.rcParams['axes.labelsize'] = 11
    plt.rcParams['xtick.labelsize'] = 10
    plt.rcParams['ytick.labelsize'] = 10
    plt.rcParams['legend.fontsize'] = 9
    plt.rcParams['grid.linewidth'] = 0.5
    plt.rcParams['grid.alpha'] = 0.3


def save_figure(fig, filename: str, dpi: int = 300, bbox_inches: str = 'tight') -> str:
    """Save a figure (adding .png when no extension is given) and close it."""
    if not os.path.splitext(filename)[1]:
        filename = f"{filename}.png"
    os.makedirs(os.path.dirname(os.path.abspath(filename)), exist_ok=True)
    fig.savefig(filename, dpi=dpi, bbox_inches=bbox_inches)
    plt.close(fig)
    logger.info(f"Figure saved to {filename}")
    return filename


def plot_group_boxplot(
    df: pd.DataFrame,
    value: str,
    group: str,
    result: Optional[KruskalResult] = None,
    ylabel: Optional[str] = None,
    title: Optional[str] = None
):
    """
    Boxplot of ``value`` by ``group`` with the individual observations.

    When ``result`` is given its H and p are shown in the title and the
    post-hoc letters are written above each box.
    """
    data = df[[value, group]].dropna()
    levels = sorted(data[group].unique().tolist())

    fig, ax = plt.subplots(figsize=FIG_SIZES['medium'])
    if data.empty:
        ax.text(0.5, 0.5, 'No data', ha='center', va='center', transform=ax.transAxes)
        return fig

    sns.boxplot(data=data, x=group, y=value, order=levels, color='white', fliersize=0, ax=ax)
    sns.stripplot(data=data, x=group, y=value, order=levels, color='0.3', size=3, alpha=0.6, ax=ax)

    heading = title or f"{value} by {group}"
    if result is not None and result.defined:
        heading += f"\nKruskal-Wallis H = {result.statistic:.2f}, p = {result.p_display}"
        top = data.groupby(group)[value].max()
        pad = 0.04 * (data[value].max() - data[value].min() or 1.0)
        for i, lvl in enumerate(levels):
            letter = result.letters.get(lvl, '')
            if letter:
                ax.text(i, top[lvl] + pad, letter, ha='center', va='bottom', fontweight='bold')

    ax.set_title(heading)
    ax.set_xlabel(group.replace('_', ' ').title())
    ax.set_ylabel(ylabel or value)
    return fig


def plot_window_variants(table: pd.DataFrame):
    """Bar chart of Kendall tau for each rolling-window variant, selected bar highlighted."""
    fig, ax = plt.subplots(figsize=FIG_SIZES['small'])
    colors = ['#08519C' if s else '#9ECAE1' for s in table['selected']]
    tau = table['tau'].fillna(0.0)
    ax.bar(table['variant'], tau, color=colors)
    for i, row in enumerate(table.itertuples(index=False)):
        ax.text(i, tau.iloc[i], f"p {row.p_display}", ha='center',
                va='bottom' if tau.iloc[i] >= 0 else 'top', fontsize=8)
    ax.axhline(0, color='black', linewidth=0.8)
    ax.set_ylabel("Kendall's tau")
    ax.set_title('Water area vs rolling-window flux')
    ax.tick_params(axis='x', rotation=45)
    return fig


def plot_fixed_wing_vs_quad(fw: pd.DataFrame, mean_column: str, result: Optional[CorrelationResult] = None,
                            title: Optional[str] = None):
    """Fixed-wing polygon area against the matched quadcopter mean, with a 1:1 line."""
    data = fw[[mean_column, 'area_m2', 'pond_id']].dropna()
    fig, ax = plt.subplots(figsize=FIG_SIZES['square'])
    if not data.empty:
        sns.scatterplot(data=data, x=mean_column, y='area_m2', hue='pond_id', ax=ax)
        lo = float(np.nanmin(data[[mean_column, 'area_m2']].to_numpy()))
        hi = float(np.nanmax(data[[mean_column, 'area_m2']].to_numpy()))
        ax.plot([lo, hi], [lo, hi], 'k--', linewidth=1, label='1:1')
        ax.legend(title='Pond', loc='upper left')
    heading = title or mean_column
    if result is not None and result.defined:
        heading += f"\ntau = {result.tau:.2f}, p = {result.p_display}, n = {result.n}"
    ax.set_title(heading)
    ax.set_xlabel(f"Quadcopter mean {AREA_LABEL}")
    ax.set_ylabel(f"Fixed-wing {AREA_LABEL}")
    return fig


def plot_flux_vs_area(water: pd.DataFrame, flux_column: str = 'median_center',
                      result: Optional[CorrelationResult] = None):
    """Rolling-window flux against quadcopter water area, coloured by pond."""
    data = water[['area_m2', flux_column, 'pond_id']].dropna()
    fig, ax = plt.subplots(figsize=FIG_SIZES['medium'])
    if not data.empty:
        sns.scatterplot(data=data, x='area_m2', y=flux_column, hue='pond_id', ax=ax)
        ax.legend(title='Pond')
    heading = 'Flux vs water area'
    if result is not None and result.defined:
        heading += f"\ntau = {result.tau:.2f}, p = {result.p_display}, n = {result.n}"
    ax.set_title(heading)
    ax.set_xlabel(f"Water {AREA_LABEL}")
    ax.set_ylabel(FLUX_LABEL)
    return fig


def plot_daily_flux(daily: pd.DataFrame, pond: str):
    """Daily flux points and the centered rolling median for one pond, one panel per season."""
    part = daily[daily['pond_id'] == pond]
    years = sorted(part['year'].unique().tolist())
    fig, axes = plt.subplots(len(years) or 1, 1, figsize=(10, 2.2 * max(len(years), 1)),
                             sharey=True, squeeze=False)
    for ax, year in zip(axes[:, 0], years):
        season = part[part['year'] == year]
        ax.plot(season['date'], season['daily_avg_flux'], 'o', markersize=2, color='0.5', label='Daily')
        ax.plot(season['date'], season['median_center'], '-', color='#08519C', label='8-day median')
        ax.set_title(f"Pond {pond}, {year}", loc='left', fontsize=10)
    axes[0, 0].legend(loc='upper right')
    fig.tight_layout()
    return fig


def render_all(results, output_dir: str, fmt: str = 'png', dpi: int = 300) -> Dict[str, str]:
    """
    Render every figure of an analysis run into ``output_dir/figures``.

    Returns
    -------
    dict
        Figure name -> saved path
    """
    set_publication_style()
    prepared = results.prepared
    fig_dir = os.path.join(output_dir, 'figures')
    saved: Dict[str, str] = {}

    def save(name: str, fig) -> None:
        saved[name] = save_figure(fig, os.path.join(fig_dir, f"{name}.{fmt}"), dpi=dpi)

    water = prepared.polygons(WATER)
    depression = prepared.polygons(POND_DEPRESSION)
    fill = prepared.fill
    tests = results.group_tests

    save('water_area_by_pond', plot_group_boxplot(
        water, 'area_m2', 'pond_id', tests.get('water_area_by_pond'), ylabel=f"Water {AREA_LABEL}"))
    save('pond_depression_area_by_pond', plot_group_boxplot(
        depression, 'area_m2', 'pond_id', tests.get('pond_depression_area_by_pond'),
        ylabel=f"Pond depression {AREA_LABEL}"))
    save('fill_percent_by_pond', plot_group_boxplot(
        fill, 'water_fill_percent', 'pond_id', tests.get('fill_percent_by_pond'), ylabel='Water fill (%)'))
    save('water_area_by_month', plot_group_boxplot(
        water, 'area_m2', 'month', tests.get('water_area_by_month'), ylabel=f"Water {AREA_LABEL}"))
    save('water_area_by_year', plot_group_boxplot(
        water, 'area_m2', 'year', tests.get('water_area_by_year'), ylabel=f"Water {AREA_LABEL}"))

    save('window_variants', plot_window_variants(results.window_variants))

    corr = results.correlations
    for polygon_type, name in [(WATER, 'water'), (POND_DEPRESSION, 'pond_depression')]:
        fw = prepared.fixed_wing(polygon_type)
        for scope in ('season', 'july'):
            key = f"{name}_fixed_wing_vs_quad_{scope}"
            save(key, plot_fixed_wing_vs_quad(fw, f"quad_mean_area_{scope}", corr.get(key),
                                              title=f"{name.replace('_', ' ').title()} ({scope})"))

    save('flux_vs_water_area', plot_flux_vs_area(prepared.quad(WATER), result=corr.get('flux_vs_water_area')))

    for pond in prepared.config.ponds:
        save(f"daily_flux_{pond}", plot_daily_flux(prepared.daily, pond))

    logger.info(f"Rendered {len(saved)} figures into {fig_dir}")
    return saved
