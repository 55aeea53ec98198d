"""
Profit Pilot - Partner Settlement Ledger

Records resale transactions, splits each sale's profit between revenue-
share partners, and tracks what every partner is owed until they are
paid out.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. Partner percentages never sum past 100
3. Nobody is paid more than they are owed
4. Rejections are values, storage failures are exceptions
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Profit Pilot Team"
