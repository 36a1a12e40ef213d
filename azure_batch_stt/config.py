"""Configuration constants, .env loading, and speech service options.

WHY: The demo needs three values to talk to Azure (region, subscription key,
audio container URL) plus an optional custom model. Keeping them in one
place, with one precedence order, means the CLI, the client and the tests
all agree on where settings come from.

HOW: python-dotenv loads the .env file on import. Options are resolved from
an optional JSON settings file (the "SpeechService" section of an
appsettings.json), then the environment, then explicit overrides (CLI flags).

RULES:
- Region, API key and audio container URL are required
- Missing required values raise ValueError with the env var to set
- API key is never hardcoded or logged
- Host is always {region}.api.cognitive.microsoft.com over HTTPS
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

# Load .env from the directory the demo is run from
load_dotenv()

# ---------------------------------------------------------------------------
# API defaults
# ---------------------------------------------------------------------------

SPEECH_HOST_TEMPLATE = "{region}.api.cognitive.microsoft.com"
SPEECH_API_BASE_PATH = "speechtotext/v3.0/"
SUBSCRIPTION_KEY_HEADER = "Ocp-Apim-Subscription-Key"

REQUEST_TIMEOUT_S = 25 * 60  # batch endpoints can be very slow to answer

DEFAULT_LOCALE = os.getenv("SPEECH_LOCALE", "en-US")
DEFAULT_DISPLAY_NAME = "Simple transcription"
DEFAULT_POLL_INTERVAL_S = 60.0
POLL_INTERVAL_ENV = "SPEECH_POLL_INTERVAL"

SETTINGS_SECTION = "SpeechService"

# settings-file key -> options field
_SETTINGS_KEYS = {
    "Region": "region",
    "ApiKey": "api_key",
    "AudioBlobContainer": "audio_container_url",
    "CustomModel": "custom_model",
}

# environment variable -> options field
_ENV_KEYS = {
    "SPEECH_REGION": "region",
    "SPEECH_API_KEY": "api_key",
    "SPEECH_AUDIO_CONTAINER_URL": "audio_container_url",
    "SPEECH_CUSTOM_MODEL": "custom_model",
}


@dataclass(frozen=True)
class SpeechServiceOptions:
    """Connection settings for the Batch Speech-to-Text API.

    RULES:
    - region: Azure region name, e.g. "westeurope"
    - api_key: sent as the Ocp-Apim-Subscription-Key header
    - audio_container_url: SAS URL of the blob container holding the audio
    - custom_model: optional self URI of a custom speech model
    """

    region: str
    api_key: str
    audio_container_url: str
    custom_model: Optional[str] = None

    @property
    def host(self) -> str:
        return SPEECH_HOST_TEMPLATE.format(region=self.region)

    @property
    def base_url(self) -> str:
        return f"https://{self.host}/"

    def __repr__(self) -> str:
        return (
            f"SpeechServiceOptions(region={self.region!r}, api_key='***', "
            f"audio_container_url={self.audio_container_url!r}, "
            f"custom_model={self.custom_model!r})"
        )


def load_settings_file(path: Path) -> Dict[str, str]:
    """Read the "SpeechService" section of a JSON settings file.

    Returns a dict keyed by SpeechServiceOptions field names. Unknown keys
    are ignored; a missing section yields an empty dict.

    Raises:
        ValueError: If the file is not valid JSON or the section is not an object.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Settings file {path} is not valid JSON: {e}") from e

    section = data.get(SETTINGS_SECTION, {}) if isinstance(data, dict) else {}
    if not isinstance(section, dict):
        raise ValueError(
            f"Section '{SETTINGS_SECTION}' in {path} must be a JSON object"
        )

    return {
        field: str(section[key]).strip()
        for key, field in _SETTINGS_KEYS.items()
        if section.get(key)
    }


def _from_environment() -> Dict[str, str]:
    values = {}
    for env_var, field in _ENV_KEYS.items():
        value = os.getenv(env_var, "").strip()
        if value:
            values[field] = value
    return values


def load_options(
    settings_path: Optional[Path] = None,
    **overrides: Any,
) -> SpeechServiceOptions:
    """Resolve SpeechServiceOptions from file, environment and overrides.

    WHY: Existing deployments keep credentials in appsettings.json, local
    runs use .env, and CLI flags are handy for one-off runs against another
    region.

    HOW: Later sources win: settings file < environment < overrides.
    Overrides whose value is None are ignored so argparse defaults can be
    passed straight through.

    RULES:
    - Raises ValueError naming every missing required setting
    - Never returns placeholder values

    Args:
        settings_path: Optional path to a JSON settings file.
        **overrides: Field values that take precedence (region, api_key, ...).

    Returns:
        A fully populated SpeechServiceOptions.
    """
    values: Dict[str, str] = {}
    if settings_path is not None:
        values.update(load_settings_file(settings_path))
    values.update(_from_environment())
    values.update({k: v for k, v in overrides.items() if v is not None})

    missing = [
        env_var
        for env_var, field in _ENV_KEYS.items()
        if field != "custom_model" and not values.get(field)
    ]
    if missing:
        raise ValueError(
            f"Speech service not configured. Set {', '.join(missing)} in the environment, "
            f"the .env file, or the '{SETTINGS_SECTION}' section of a settings file."
        )

    return SpeechServiceOptions(
        region=values["region"],
        api_key=values["api_key"],
        audio_container_url=values["audio_container_url"],
        custom_model=values.get("custom_model"),
    )


def load_poll_interval(override: Optional[float] = None) -> float:
    """Seconds between status checks: override, then SPEECH_POLL_INTERVAL, then 60.

    Raises:
        ValueError: If the value is not a positive number.
    """
    if override is not None:
        value: Any = override
    else:
        value = os.getenv(POLL_INTERVAL_ENV) or DEFAULT_POLL_INTERVAL_S
    try:
        seconds = float(value)
    except ValueError:
        raise ValueError(
            f"{POLL_INTERVAL_ENV} must be a number of seconds, got {value!r}"
        ) from None
    if seconds <= 0:
        raise ValueError(f"Poll interval must be positive, got {seconds:g}")
    return seconds
