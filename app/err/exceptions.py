"""Failure states for talking HNAP to the modem and decoding what it sends back.

Rough split:
    - TransportError: couldn't talk to the modem at all, or it didn't answer 200/OK
    - ProtocolError: modem answered, but the Result field says something we can't continue with
    - DecodeError: JSON was not shaped the way we expected
    - MalformedFieldError: one of the ^ delimited strings didn't match its grammar (firmware update?!)
"""


class ModemError(Exception):
    """Base for everything below so the poll loop can catch one thing."""

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message, status_code, payload)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def __str__(self):
        return self.message


class TransportError(ModemError):
    """Exception for connection level failures."""


class ModemNotOkError(TransportError):
    """Exception for non-200/OK responses from modem."""


class ProtocolError(ModemError):
    """Modem replied with a Result we can't work with."""


class UnexpectedStatusError(ProtocolError):
    """Result value outside the set we know how to handle for a given action."""


class ApplicationError(ProtocolError):
    """Modem said `ERROR` in the Result field even though HTTP said 200."""


class CredentialsError(UnexpectedStatusError):
    """LoginResult=FAILED; username or password is wrong."""


class LockedOutError(UnexpectedStatusError):
    """LoginResult=LOCKUP; too many login attempts."""


class RebootRequiredError(UnexpectedStatusError):
    """LoginResult=REBOOT; account is locked until the modem is rebooted."""


class SettingsResetRequiredError(UnexpectedStatusError):
    """LoginResult=OK_CHANGED; modem wants the login settings reset."""


class DecodeError(ModemError):
    """JSON reply was structurally unexpected."""


class MalformedFieldError(DecodeError):
    """A delimited sub-field did not match its grammar.

    `raw` holds the offending text so we can tell what the firmware changed.
    """

    def __init__(self, message, raw=None, payload=None):
        super().__init__(message, payload=payload)
        self.raw = raw


class SessionStateError(Exception):
    """Programming error: action issued from the wrong auth state."""
