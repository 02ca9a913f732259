"""
Utility Functions Module

This module provides helper functions for money formatting, CSV export, and display.
"""

import logging
import numbers
import os

import pandas as pd
from rich.console import Console
from rich.table import Table

logger = logging.getLogger(__name__)

console = Console()


def format_money(value):
    """Format a currency amount, e.g. 1234567.8 -> '£1,234,568'"""
    if value is None or pd.isna(value):
        return "n/a"
    sign = "-" if value < 0 else ""
    return f"{sign}£{abs(value):,.0f}"


def format_age(value):
    if value is None or pd.isna(value):
        return "n/a"
    if isinstance(value, numbers.Integral):
        return str(value)
    return f"{value:.1f}"


def print_rich_table(df, title):
    """Print a pandas DataFrame as a rich table"""
    table = Table(title=title, title_style="bold magenta",
                  header_style="bold cyan")
    for col in df.columns:
        table.add_column(str(col), justify="right")
    for _, row in df.iterrows():
        table.add_row(*[str(item) for item in row])
    console.print(table)


def export_to_csv(data, filename, output_dir='Drawdown Outputs', subdirectory=None):
    """Export data to CSV file; failures are logged, not raised"""
    if subdirectory:
        output_dir = os.path.join(output_dir, subdirectory)
    filepath = os.path.join(output_dir, filename)
    try:
        df = data if isinstance(data, pd.DataFrame) else pd.DataFrame(data)
        os.makedirs(output_dir, exist_ok=True)
        df.to_csv(filepath, index=False)
        logger.info(f"Data successfully exported to '{filepath}'")
        return filepath
    except (OSError, ValueError) as e:
        logger.error(f"Error exporting to CSV '{filepath}': {e}")
        return None
