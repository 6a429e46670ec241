"""Boundary contracts and their Supabase / e-mail implementations."""

from stockalert.sinks.base import (
    EmailSink,
    NotificationSink,
    ProductProvider,
    RecipientProvider,
)
from stockalert.sinks.email import (
    FallbackEmailSink,
    ResendEmailSink,
    SendGridEmailSink,
    build_email_sink,
)
from stockalert.sinks.supabase import SupabaseBackend

__all__ = [
    "EmailSink",
    "FallbackEmailSink",
    "NotificationSink",
    "ProductProvider",
    "RecipientProvider",
    "ResendEmailSink",
    "SendGridEmailSink",
    "SupabaseBackend",
    "build_email_sink",
]
