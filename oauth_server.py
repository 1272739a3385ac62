import logging

from flask import Flask, request

from errors import VerificationError
from models import VerificationRequest
from pages import failure_page, status_page, success_page

log = logging.getLogger(__name__)


def client_address() -> str:
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        # "client, proxy1, proxy2": the first hop is the user.
        return forwarded.split(",")[0].strip()
    return request.remote_addr or ""


def create_app(pipeline, submit) -> Flask:
    """Flask app serving the status page and the OAuth callback.

    `submit` runs a coroutine to completion and returns its result (on the
    bot's event loop in production, `asyncio.run` in tests).
    """
    app = Flask(__name__)

    @app.route("/")
    def index():
        return status_page()

    @app.route("/auth/callback")
    def oauth_callback():
        if request.args.get("error"):
            log.info("User cancelled authorization: %s", request.args.get("error"))
            return failure_page("Authorization was cancelled. You can start the verification again at any time.")

        code = request.args.get("code")
        if not code:
            return failure_page("Authorization failed: no code received.", code="request")

        verification = VerificationRequest(
            code=code,
            address=client_address(),
            user_agent=request.headers.get("User-Agent"),
        )

        try:
            submit(pipeline.run(verification))
        except VerificationError as e:
            log.error("Verification failed at stage %s: %s", e.stage, e.detail)
            return failure_page(e.public_message, code=e.stage)
        except Exception:
            log.exception("Unexpected error during verification")
            return failure_page(VerificationError.public_message, code=VerificationError.stage)

        return success_page()

    return app
