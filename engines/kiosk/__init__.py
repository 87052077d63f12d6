"""
Kiosk Engine
============
Water kiosk payment logic: discount stacking, digital fee optimisation,
passes, wallet top-ups, the transaction ledger and analytics.
"""
