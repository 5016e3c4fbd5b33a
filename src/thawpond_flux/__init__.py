"""
Thaw Pond Ebullition Analysis Framework.

Research codebase relating thaw-pond surface geometry measured from
unpiloted aerial system (UAS) imagery to methane ebullition flux at
Stordalen Mire. The pipeline expands daily flux onto a complete seasonal
calendar, computes 8-day rolling medians and sums, joins them back onto the
aerial-survey polygons and runs the nonparametric tests used in the paper.
"""

__version__ = "0.1.0"
