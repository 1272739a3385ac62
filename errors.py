"""Failures that abort a verification.

Every error carries a ``stage`` (shown to the user as an error code), an
operator-facing ``detail`` that only goes to the logs, and a generic
``public_message`` that is safe to render in the browser.
"""


class VerificationError(Exception):
    stage = "internal"
    public_message = "Something went wrong while verifying your account. Please try again later."

    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail

    def __str__(self):
        return f"[{self.stage}] {self.detail}" if self.detail else f"[{self.stage}]"


class ExchangeError(VerificationError):
    stage = "exchange"
    public_message = "Your authorization link was invalid or has expired. Please start the verification again."


class ProfileError(VerificationError):
    stage = "profile"
    public_message = "We couldn't read your Discord profile. Please try again."


class DeliveryError(VerificationError):
    stage = "notification"
    public_message = "Your verification couldn't be recorded. Please try again in a few minutes."


class VerificationTimeout(VerificationError):
    stage = "timeout"
    public_message = "Verification took too long. Please try again."
