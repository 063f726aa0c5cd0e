"""Settings loaded from the environment (optionally seeded from a .env file)."""

import logging
import os
import pathlib
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import yaml

from framebot.borders import ScanConfig
from framebot.decisions import DEFAULT_MAX_SIZE, DEFAULT_TEMPLATE, DecisionConfig, FrameTemplate, Region

logger = logging.getLogger(__name__)

ENV_LOCATIONS = ('.env', '../.env', '../env/.env')


def load_env(locations: Sequence[str] = ENV_LOCATIONS) -> List[str]:
    """Load KEY=VALUE pairs from the first .env file found.

    Variables already set in the process environment win. Returns the keys
    that were added.
    """
    env_file = next(
        (pathlib.Path(loc) for loc in locations if pathlib.Path(loc).is_file()),
        None,
    )
    if env_file is None:
        return []

    added = []
    with open(env_file) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith('#') or '=' not in line:
                continue
            key, value = line.split('=', 1)
            key = key.replace('export ', '', 1).strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value
                added.append(key)
    return added


def _required(name: str) -> str:
    value = os.environ.get(name, '').strip()
    if not value:
        raise ValueError(f"Missing required environment variable {name}")
    return value


def _int(name: str, default: int) -> int:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float(name: str, default: float) -> float:
    raw = os.environ.get(name, '').strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, '').strip().lower()
    if not raw:
        return default
    return raw in ('1', 'true', 'yes', 'on')


def load_templates(path: str) -> List[FrameTemplate]:
    """Read a YAML catalogue of frame layouts.

    templates:
      - name: legacy-2k
        width: 2048
        height: 1440
        crop: {left: 64, top: 69, width: 1920, height: 1080}
    """
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ValueError(f"Cannot read templates file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ValueError(f"Templates file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Templates file {path} must be a mapping with a 'templates' list")
    entries = data.get('templates') or []
    if not isinstance(entries, list):
        raise ValueError(f"'templates' in {path} must be a list")

    templates = []
    for i, entry in enumerate(entries):
        try:
            crop = entry['crop']
            templates.append(FrameTemplate(
                name=str(entry.get('name', f'template-{i}')),
                width=int(entry['width']),
                height=int(entry['height']),
                crop=Region(
                    left=int(crop['left']),
                    top=int(crop['top']),
                    width=int(crop['width']),
                    height=int(crop['height']),
                ),
            ))
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Invalid template entry #{i} in {path}: {e}") from e
    logger.info(f"Loaded {len(templates)} frame template(s) from {path}")
    return templates


@dataclass
class Settings:
    slack_bot_token: str
    slack_app_token: str
    target_channel_id: str
    max_size: int = DEFAULT_MAX_SIZE
    templates: List[FrameTemplate] = field(default_factory=lambda: [DEFAULT_TEMPLATE])
    scan: ScanConfig = field(default_factory=ScanConfig)
    fetch_timeout: float = 30.0
    pending_ttl: float = 900.0
    done_history_size: int = 1000
    port: int = 8080
    health_server_enabled: bool = True
    log_level: str = 'INFO'
    templates_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'Settings':
        slack_bot_token = _required('SLACK_BOT_TOKEN')
        slack_app_token = _required('SLACK_APP_TOKEN')
        target_channel_id = _required('TARGET_CHANNEL_ID')

        templates = [
            FrameTemplate(
                name='env',
                width=_int('TEMPLATE_WIDTH', 2048),
                height=_int('TEMPLATE_HEIGHT', 1440),
                crop=Region(
                    left=_int('TEMPLATE_CROP_LEFT', 64),
                    top=_int('TEMPLATE_CROP_TOP', 69),
                    width=_int('TEMPLATE_CROP_WIDTH', 1920),
                    height=_int('TEMPLATE_CROP_HEIGHT', 1080),
                ),
            )
        ]
        templates_file = os.environ.get('TEMPLATES_FILE', '').strip() or None
        if templates_file:
            templates.extend(load_templates(templates_file))

        scan = ScanConfig(
            brightness_threshold=_int('BRIGHTNESS_THRESHOLD', 245),
            sample_stride=_int('SAMPLE_STRIDE', 10),
            coverage_threshold=_float('COVERAGE_THRESHOLD', 0.95),
            min_border_thickness=_int('MIN_BORDER_THICKNESS', 6),
        )

        return cls(
            slack_bot_token=slack_bot_token,
            slack_app_token=slack_app_token,
            target_channel_id=target_channel_id,
            max_size=_int('MAX_SIZE', DEFAULT_MAX_SIZE),
            templates=templates,
            scan=scan,
            fetch_timeout=_float('FETCH_TIMEOUT', 30.0),
            pending_ttl=_float('PENDING_TTL_SECONDS', 900.0),
            done_history_size=_int('DONE_HISTORY_SIZE', 1000),
            port=_int('PORT', 8080),
            health_server_enabled=_bool('HEALTH_SERVER_ENABLED', True),
            log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
            templates_file=templates_file,
        )

    @property
    def decision(self) -> DecisionConfig:
        return DecisionConfig(max_size=self.max_size, templates=tuple(self.templates))
