# backend/portfolio_tracker/services/__init__.py
"""
Service layer: market data access, currency conversion, valuation,
dividend estimation and bookkeeping.

Import from the submodules directly, e.g.:
    from portfolio_tracker.services.valuation import ValuationEngine
    from portfolio_tracker.services.exceptions import ServiceError
"""
