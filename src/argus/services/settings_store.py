from __future__ import annotations

import logging
import threading
from typing import Optional

from argus.config import ArgusConfig
from argus.schemas.settings import LGTMSettings, ServiceConfig

logger = logging.getLogger(__name__)

DEFAULT_GRAFANA_USERNAME = "admin"
DEFAULT_GRAFANA_PASSWORD = "admin123"


# PUBLIC_INTERFACE
def default_settings(config: ArgusConfig) -> LGTMSettings:
    """Settings used until the user saves their own: configured URLs, default Grafana credentials."""
    return LGTMSettings(
        grafana=ServiceConfig(
            url=config.service_url("grafana"),
            username=DEFAULT_GRAFANA_USERNAME,
            password=DEFAULT_GRAFANA_PASSWORD,
        ),
        prometheus=ServiceConfig(url=config.service_url("prometheus")),
        loki=ServiceConfig(url=config.service_url("loki")),
        tempo=ServiceConfig(url=config.service_url("tempo")),
    )


class SettingsStore:
    """In-memory LGTM settings; lost on restart."""

    def __init__(self, config: ArgusConfig) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._settings: Optional[LGTMSettings] = None

    # PUBLIC_INTERFACE
    def get(self) -> LGTMSettings:
        """Return saved settings, or the defaults when nothing was saved."""
        with self._lock:
            current = self._settings
        if current is None:
            return default_settings(self._config)
        return current.model_copy(deep=True)

    # PUBLIC_INTERFACE
    def save(self, settings: LGTMSettings) -> None:
        """Replace the saved settings."""
        normalized = settings.model_copy(deep=True)
        for svc in (normalized.grafana, normalized.prometheus, normalized.loki, normalized.tempo):
            svc.url = svc.url.rstrip("/")
        with self._lock:
            self._settings = normalized
        logger.info(
            "Settings saved grafana=%s prometheus=%s loki=%s tempo=%s",
            normalized.grafana.url,
            normalized.prometheus.url,
            normalized.loki.url,
            normalized.tempo.url,
        )
