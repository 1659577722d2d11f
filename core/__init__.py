"""
Core package for portfolio statistics result objects.

Result objects live in ``core.result_objects``; the computation itself is in
``portfolio_stats_engine``.
"""
