"""
Creators app.

Holds the creator profile: the payee side of every payment, carrying the
monthly subscription price, the pro-plan flag, the lifetime earnings counter
and the PIX key used for payouts.
"""
