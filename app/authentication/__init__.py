"""
Authentication application.

Email-based users and JWT token endpoints. Users also carry the payer data
the payment gateway needs (name, CPF/CNPJ, gateway customer id).

Usage:
    from authentication.models import User
"""
