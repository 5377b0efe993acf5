"""
CronosMatic Email Package.

Modules:
- core: Base send_email function (SMTP)
- store: Store notification templates (order confirmation)
"""
