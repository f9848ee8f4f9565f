import logging
import os
import re
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

import requests

logger = logging.getLogger(__name__)

# ------------------------------
# API SETTINGS
# ------------------------------
API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-3-7-sonnet-20250219"
MAX_TOKENS = 1000

# Status texts shown under the "Apply AI Styling" button
STATUS_REQUESTING = "Requesting styling from Anthropic Claude..."
STATUS_APPLIED = "Styling applied successfully!"
STATUS_MISSING_KEY = "ERROR: ANTHROPIC_API_KEY environment variable not set"
STATUS_NO_CSS = "Error: Could not extract CSS from the API response"

# End tags are case-insensitive in HTML
STYLE_END_TAG = re.compile(r"</(style)", re.IGNORECASE)

# Page elements the generated CSS is allowed to target
STYLE_TARGETS = (
    "- h1 title ",
    "- Multiple card elements with card-header elements ",
    "- Select inputs, a textarea, and buttons ",
    "- Plots (pngs) and tables within card elements ",
    "- you can also apply new styles to the following classes: btn, pagination, "
    "table, paginate_button, selectize-input, bslib-grid, form-group ",
)


# ------------------------------
# ERRORS
# ------------------------------
class StylingError(Exception):
    """Base class for a failed styling request."""

    status = "Error"


class MissingAPIKeyError(StylingError):
    def __init__(self):
        super().__init__(STATUS_MISSING_KEY)
        self.status = STATUS_MISSING_KEY


class APIResponseError(StylingError):
    """The API answered with a non-2xx status code."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"API returned HTTP {status_code}")
        self.status_code = status_code
        self.body = body
        self.status = f"API Error: {body}"


class CSSExtractionError(StylingError):
    def __init__(self):
        super().__init__(STATUS_NO_CSS)
        self.status = STATUS_NO_CSS


# ------------------------------
# CONFIG
# ------------------------------
@dataclass(frozen=True)
class StylingConfig:
    api_key: str
    model: str = DEFAULT_MODEL
    max_tokens: int = MAX_TOKENS
    api_url: str = API_URL
    anthropic_version: str = ANTHROPIC_VERSION
    timeout: float | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "StylingConfig":
        """Read the credential (and optional model override) right now."""
        env = os.environ if environ is None else environ
        return cls(
            api_key=env.get("ANTHROPIC_API_KEY", ""),
            model=env.get("ANTHROPIC_MODEL") or DEFAULT_MODEL,
        )


# ------------------------------
# REQUEST / RESPONSE HELPERS
# ------------------------------
def build_styling_prompt(prompt: str) -> str:
    """Instruction sent to the model; embeds the user's theme verbatim."""
    return (
        "I need CSS to style a Streamlit dashboard based on this theme: '"
        + prompt
        + "'. Respond ONLY with CSS code, no explanations, no backticks, "
        "no markdown formatting. "
        "The CSS is for an app with these elements: "
        + "".join(STYLE_TARGETS)
        + "Make the styles very dramatic and visually obvious - use bright colors, "
        "borders, and other elements that will make it clear the styling has "
        "been applied."
    )


def build_headers(config: StylingConfig) -> dict:
    return {
        "x-api-key": config.api_key,
        "anthropic-version": config.anthropic_version,
        "Content-Type": "application/json",
    }


def build_request_body(prompt: str, config: StylingConfig) -> dict:
    return {
        "model": config.model,
        "max_tokens": config.max_tokens,
        "messages": [
            {"role": "user", "content": build_styling_prompt(prompt)},
        ],
    }


def extract_css(payload) -> str:
    """Return ``content[0].text`` of a messages response.

    Any other shape (missing ``content``, empty list, non-dict segment,
    missing or empty ``text``) raises CSSExtractionError.
    """
    if not isinstance(payload, dict):
        raise CSSExtractionError()
    content = payload.get("content")
    if not isinstance(content, list) or not content:
        raise CSSExtractionError()
    first = content[0]
    if not isinstance(first, dict):
        raise CSSExtractionError()
    text = first.get("text")
    if not isinstance(text, str) or text == "":
        raise CSSExtractionError()
    return text


def strip_code_fences(text: str) -> str:
    return text.replace("```css", "").replace("```", "")


def sanitize_css(text: str) -> str:
    """Drop markdown fences and keep the payload inside its <style> element."""
    css = strip_code_fences(text)
    return STYLE_END_TAG.sub(lambda m: "<\\/" + m.group(1), css)


def request_css(prompt: str, config: StylingConfig, session=None) -> str:
    """POST one styling request and return the sanitized CSS.

    Transport failures surface as ``requests.RequestException``.
    """
    if not config.api_key:
        raise MissingAPIKeyError()

    http = session if session is not None else requests
    logger.info(
        "Requesting CSS from %s (model=%s, prompt_chars=%d)",
        config.api_url,
        config.model,
        len(prompt),
    )
    response = http.post(
        config.api_url,
        headers=build_headers(config),
        json=build_request_body(prompt, config),
        timeout=config.timeout,
    )

    if not 200 <= response.status_code < 300:
        logger.warning("Styling API returned HTTP %s", response.status_code)
        raise APIResponseError(response.status_code, response.text)

    try:
        payload = response.json()
    except ValueError as e:
        raise CSSExtractionError() from e

    return sanitize_css(extract_css(payload))


# ------------------------------
# STATE MACHINE
# ------------------------------
class StylingState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    APPLIED = "applied"
    FAILED = "failed"


@dataclass(frozen=True)
class StylingResult:
    state: StylingState
    status: str
    css: str


class StyleRequester:
    """Owns the applied stylesheet text and runs one request at a time.

    ``config_factory`` is called at request time so the credential is never
    cached. ``apply_stylesheet`` receives the full CSS text and is the only
    place the page is written to.
    """

    def __init__(
        self,
        apply_stylesheet: Callable[[str], None],
        config_factory: Callable[[], StylingConfig] = StylingConfig.from_env,
        session=None,
    ):
        self._apply_stylesheet = apply_stylesheet
        self._config_factory = config_factory
        self._session = session
        self._lock = threading.Lock()
        self._in_flight = False
        self.css = ""
        self.state = StylingState.IDLE
        self.status = ""

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def _begin(self, prompt: str) -> bool:
        if not prompt or not prompt.strip():
            return False
        with self._lock:
            if self._in_flight:
                logger.info("Ignoring styling trigger while a request is in flight")
                return False
            self._in_flight = True
        self.state = StylingState.REQUESTING
        self.status = STATUS_REQUESTING
        return True

    def _run(self, prompt: str) -> StylingResult:
        try:
            try:
                css = request_css(prompt, self._config_factory(), self._session)
            except StylingError as e:
                logger.warning("Styling request failed: %s", e)
                return self._finish(StylingState.FAILED, e.status)
            except requests.RequestException as e:
                logger.warning("Styling request transport error: %s", e)
                return self._finish(StylingState.FAILED, f"Error: {e}")

            self._apply_stylesheet(css)
            self.css = css
            logger.info("Applied %d characters of generated CSS", len(css))
            return self._finish(StylingState.APPLIED, STATUS_APPLIED)
        finally:
            with self._lock:
                self._in_flight = False

    def _finish(self, state: StylingState, status: str) -> StylingResult:
        self.state = state
        self.status = status
        return StylingResult(state=state, status=status, css=self.css)

    def trigger(self, prompt: str) -> StylingResult | None:
        """Run a request synchronously. Returns None when the trigger is ignored."""
        if not self._begin(prompt):
            return None
        return self._run(prompt)

    def submit(self, prompt: str, executor: Executor) -> Future | None:
        """Run a request on ``executor``. Returns None when the trigger is ignored."""
        if not self._begin(prompt):
            return None
        try:
            return executor.submit(self._run, prompt)
        except RuntimeError:
            with self._lock:
                self._in_flight = False
            raise
