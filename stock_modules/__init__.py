"""
Business modules built on the stock kernel.

Modules declare workflows, ORM models, DTOs and a service facade.  Every
ledger mutation they cause goes through ``stock_kernel.services.MovementEngine``.
"""
