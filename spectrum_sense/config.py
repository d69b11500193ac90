from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from .results import Locale
from .share_codec import DEFAULT_BASE_URL

log = logging.getLogger(__name__)

ENV_PREFIX = "SPECTRUM_SENSE_"


@dataclass(frozen=True, slots=True)
class AppConfig:
    base_url: str = DEFAULT_BASE_URL
    # Blank pause between an answer and the next stimulus.
    interstitial_s: float = 0.3
    window_size: tuple[int, int] = (960, 540)
    target_fps: int = 60
    locale: Locale = Locale.EN
    nickname: str | None = None
    # Share token to open on launch (results view).
    result_token: str | None = None
    seed: int | None = None

    def __post_init__(self) -> None:
        if self.interstitial_s < 0.0:
            raise ValueError("interstitial_s must be >= 0")
        if self.target_fps <= 0:
            raise ValueError("target_fps must be > 0")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AppConfig":
        env = os.environ if environ is None else environ
        default = cls()

        def get(name: str) -> str:
            return env.get(ENV_PREFIX + name, "").strip()

        interstitial_ms = _as_float(get("INTERSTITIAL_MS"), default.interstitial_s * 1000.0)
        seed_raw = get("SEED")
        seed = int(_as_float(seed_raw, 0.0)) if seed_raw else None

        return cls(
            base_url=get("BASE_URL") or default.base_url,
            interstitial_s=max(0.0, interstitial_ms / 1000.0),
            window_size=default.window_size,
            target_fps=default.target_fps,
            locale=Locale.coerce(get("LOCALE") or default.locale),
            nickname=get("NICKNAME") or None,
            result_token=get("RESULT") or None,
            seed=seed or None,
        )


def _as_float(value: str, fallback: float) -> float:
    if value == "":
        return fallback
    try:
        return float(value)
    except ValueError:
        log.warning("ignoring non-numeric setting %r", value)
        return fallback
