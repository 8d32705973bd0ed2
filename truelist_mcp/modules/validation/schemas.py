from dataclasses import dataclass
from typing import List

from email_validator import validate_email, EmailNotValidError

MAX_BATCH_EMAILS = 50


class BatchValidationError(ValueError):
    """Raised when a request is rejected before any remote call is made"""


def check_email_format(email: str) -> str:
    """Syntax-only check; returns the address exactly as given"""
    if not isinstance(email, str) or not email:
        raise BatchValidationError("Invalid email address: empty or not a string")
    try:
        # Syntax only; special-use domains such as .local and .test are accepted
        validate_email(
            email,
            check_deliverability=False,
            globally_deliverable=False,
            test_environment=True,
        )
    except EmailNotValidError as e:
        raise BatchValidationError(f"Invalid email address {email!r}: {str(e)}")
    return email


@dataclass
class EmailRequest:
    email: str

    def __post_init__(self):
        check_email_format(self.email)


@dataclass
class BatchRequest:
    emails: List[str]

    def __post_init__(self):
        if not isinstance(self.emails, (list, tuple)):
            raise BatchValidationError("emails must be an array of email addresses")
        if not self.emails:
            raise BatchValidationError("emails must contain at least 1 address")
        if len(self.emails) > MAX_BATCH_EMAILS:
            raise BatchValidationError(
                f"Maximum {MAX_BATCH_EMAILS} emails per request, got {len(self.emails)}"
            )

        # One malformed address rejects the whole batch
        for position, email in enumerate(self.emails):
            try:
                check_email_format(email)
            except BatchValidationError as e:
                raise BatchValidationError(f"emails[{position}]: {e}")

        self.emails = list(self.emails)
