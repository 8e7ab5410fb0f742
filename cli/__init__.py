"""
Command-line entry points.

Provides:
- run_daily: the daily batch (once, after the close, or as a service)
- grade: scorecard grading and enrichment
- backtest: replay of the setup catalog over history
"""
