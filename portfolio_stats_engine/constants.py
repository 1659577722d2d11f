"""
Core Constants Module

Centralized definitions for account types, calendar labels and display
placeholders shared by the stats engine and its report consumers.
"""

# Account Type Constants
# ======================
# Canonical account types stored on the ``accounts`` table.

ACCOUNT_TYPE_MANAGED = 'managed_account'
ACCOUNT_TYPE_PMS = 'pms'

# Broker wildcard used by the adapter registry
ANY_BROKER = '*'

# Display Placeholders
# ====================
# "No data" marker for percent/return fields. Distinct from "0.00" (zero return).

MISSING = '-'

# Calendar Labels
# ===============

MONTH_NAMES = [
    'January', 'February', 'March', 'April', 'May', 'June',
    'July', 'August', 'September', 'October', 'November', 'December',
]

QUARTER_MONTHS = {
    'q1': ['January', 'February', 'March'],
    'q2': ['April', 'May', 'June'],
    'q3': ['July', 'August', 'September'],
    'q4': ['October', 'November', 'December'],
}

QUARTER_LABELS = {
    'q1': 'Q1',
    'q2': 'Q2',
    'q3': 'Q3',
    'q4': 'Q4',
}

# Trailing Return Labels
# ======================
# API key → short label used by reports.

TRAILING_LABELS = {
    'fiveDays': '5D',
    'tenDays': '10D',
    'fifteenDays': '15D',
    'oneMonth': '1M',
    'threeMonths': '3M',
    'sixMonths': '6M',
    'oneYear': '1Y',
    'twoYears': '2Y',
    'fiveYears': '5Y',
    'sinceInception': 'Since Inception',
    'MDD': 'MDD',
    'currentDD': 'Current DD',
}

# NAV lookup directions for SourceAdapter.get_nav_at_date
NAV_DIRECTIONS = ('before', 'after', 'closest')

# Holdings classification
DEBT_MARKERS = ('debt', 'bond', 'ncd', 'sdl')
DEBT_SYMBOL_MARKERS = ('bond', 'ncd')
