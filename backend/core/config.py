"""
Configuration

Typed, read-only settings loaded from a JSON file. Missing or malformed
files fall back to defaults so the app can still run.

Lookup order for the file:
1. Path given to load_config() / set_config_path()
2. POSEMATCH_CONFIG environment variable
3. posematch.json next to main.py

Example posematch.json:
    {
        "poses": {"save_directory": "data/poses", "default_tolerance": 0.15},
        "matching": {"normalization_mode": "root_orient_scale"},
        "minigame": {
            "goals": [
                {"pose_name": "Arms Up", "display_asset": "arms_up.png", "required_similarity": 0.75}
            ],
            "completion": {"display_asset": "well_done.png", "display_seconds": 20, "next_scene": "HubLevel"}
        }
    }
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .domain.pose import LANDMARK_COUNT
from .domain.sequence import CompletionPolicy, NormalizationMode, PoseGoal

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "POSEMATCH_CONFIG"


@dataclass(frozen=True)
class PosesConfig:
    save_directory: str = str(Path("data") / "poses")
    default_tolerance: float = 0.15
    landmark_count: int = LANDMARK_COUNT


@dataclass(frozen=True)
class MatchingConfig:
    normalization_mode: NormalizationMode = NormalizationMode.ROOT_ORIENT_SCALE
    # Fail the comparison (instead of skipping scaling) when a hip width is ~0
    strict_scale: bool = False


@dataclass(frozen=True)
class MinigameConfig:
    goals: tuple[PoseGoal, ...] = ()
    auto_start: bool = True
    completion: Optional[CompletionPolicy] = None


@dataclass(frozen=True)
class StreamConfig:
    anchored: bool = False
    samples_per_pose: int = 1
    multiplier: float = 1.0


@dataclass(frozen=True)
class AppConfig:
    poses: PosesConfig = field(default_factory=PosesConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    minigame: MinigameConfig = field(default_factory=MinigameConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)


_CONFIG_PATH: Optional[Path] = None
_CONFIG_CACHE: Optional[AppConfig] = None


def _backend_root() -> Path:
    # core/config.py -> backend root is one level up.
    return Path(__file__).resolve().parents[1]


def get_default_config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser().resolve()
    return _backend_root() / "posematch.json"


def set_config_path(path: Union[str, Path]) -> None:
    """Override the config path and drop the cached config."""
    global _CONFIG_PATH
    global _CONFIG_CACHE
    _CONFIG_PATH = Path(path).expanduser().resolve()
    _CONFIG_CACHE = None


def _deep_get(d: Dict[str, Any], keys: list[str], default: Any = None) -> Any:
    cur: Any = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
    return cur if cur is not None else default


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except (TypeError, ValueError):
        return int(default)


def _as_float(v: Any, default: float) -> float:
    try:
        return float(v)
    except (TypeError, ValueError):
        return float(default)


def _as_bool(v: Any, default: bool) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, (int, float)):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in ("1", "true", "yes", "on")
    return bool(default)


def _as_str(v: Any, default: str = "") -> str:
    return str(v) if v is not None else str(default)


def _parse_mode(v: Any) -> NormalizationMode:
    try:
        return NormalizationMode(_as_str(v, "").strip().lower())
    except ValueError:
        logger.warning(f"Unknown normalization_mode {v!r}, using root_orient_scale")
        return NormalizationMode.ROOT_ORIENT_SCALE


def _parse_goals(raw_goals: Any) -> tuple[PoseGoal, ...]:
    if not isinstance(raw_goals, list):
        return ()

    goals = []
    for i, obj in enumerate(raw_goals):
        if not isinstance(obj, dict) or not _as_str(obj.get("pose_name"), "").strip():
            logger.warning(f"Skipping minigame goal #{i + 1}: missing pose_name")
            continue
        required = _as_float(obj.get("required_similarity"), 0.75)
        goals.append(PoseGoal(
            reference_name=_as_str(obj.get("pose_name")),
            display_asset=obj.get("display_asset"),
            required_similarity=min(1.0, max(0.0, required)),
        ))
    return tuple(goals)


def _parse_completion(obj: Any) -> Optional[CompletionPolicy]:
    if not isinstance(obj, dict):
        return None
    display_seconds = _as_float(obj.get("display_seconds"), 20.0)
    return CompletionPolicy(
        display_asset=obj.get("display_asset"),
        display_seconds=display_seconds if display_seconds >= 0.0 else 20.0,
        next_scene=_as_str(obj.get("next_scene"), "HubLevel") or "HubLevel",
    )


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    p = Path(path).expanduser().resolve() if path else (_CONFIG_PATH or get_default_config_path())
    if not p.exists():
        return AppConfig()
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read config {p} ({e}); using defaults")
        return AppConfig()

    if not isinstance(raw, dict):
        logger.warning(f"Config {p} is not a JSON object; using defaults")
        return AppConfig()

    save_directory = _as_str(_deep_get(raw, ["poses", "save_directory"], PosesConfig.save_directory))
    default_tolerance = _as_float(_deep_get(raw, ["poses", "default_tolerance"], 0.15), 0.15)
    landmark_count = _as_int(_deep_get(raw, ["poses", "landmark_count"], LANDMARK_COUNT), LANDMARK_COUNT)

    samples_per_pose = _as_int(_deep_get(raw, ["stream", "samples_per_pose"], 1), 1)

    return AppConfig(
        poses=PosesConfig(
            save_directory=save_directory or PosesConfig.save_directory,
            default_tolerance=default_tolerance if default_tolerance >= 0.0 else 0.15,
            landmark_count=landmark_count if landmark_count > 0 else LANDMARK_COUNT,
        ),
        matching=MatchingConfig(
            normalization_mode=_parse_mode(
                _deep_get(raw, ["matching", "normalization_mode"], "root_orient_scale")
            ),
            strict_scale=_as_bool(_deep_get(raw, ["matching", "strict_scale"], False), False),
        ),
        minigame=MinigameConfig(
            goals=_parse_goals(_deep_get(raw, ["minigame", "goals"], [])),
            auto_start=_as_bool(_deep_get(raw, ["minigame", "auto_start"], True), True),
            completion=_parse_completion(_deep_get(raw, ["minigame", "completion"], None)),
        ),
        stream=StreamConfig(
            anchored=_as_bool(_deep_get(raw, ["stream", "anchored"], False), False),
            samples_per_pose=samples_per_pose if samples_per_pose > 0 else 1,
            multiplier=_as_float(_deep_get(raw, ["stream", "multiplier"], 1.0), 1.0),
        ),
    )


def get_config() -> AppConfig:
    global _CONFIG_CACHE
    if _CONFIG_CACHE is None:
        _CONFIG_CACHE = load_config()
    return _CONFIG_CACHE
