"""Account and session services."""

from car_fund.services.auth.mailer import (
    DeliveryError,
    SignInLinkSender,
    SmtpLinkSender,
)
from car_fund.services.auth.session import (
    Account,
    AuthError,
    AuthEvent,
    AuthListener,
    LocalSessionProvider,
    SessionProvider,
    SignInRequest,
    account_id_for_email,
)

__all__ = [
    "Account",
    "AuthError",
    "AuthEvent",
    "AuthListener",
    "DeliveryError",
    "LocalSessionProvider",
    "SessionProvider",
    "SignInLinkSender",
    "SignInRequest",
    "SmtpLinkSender",
    "account_id_for_email",
]
