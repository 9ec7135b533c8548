"""Workspace Platform - session auth + signup provisioning backend.

Two concerns live here:
- Stateless session tokens (HMAC-SHA256 signed, JWT-compatible) issued at
  login and verified on every protected request without a DB round trip.
- A one-time provisioning saga that gives every new user a personal
  workspace, owner membership, 14-day trial and onboarding enrollment.

See README for setup and usage.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
