"""
Configuration for Pipeline Commitment Analytics.

Defaults live in DEFAULT_CONFIG. An optional YAML file
(configs/pipeline_analytics.yaml) is deep-merged on top, then a small set of
environment variables (loaded from .env) override individual values.

Usage:
    from analytics.lib.config import load_config, StageRules
    config = load_config()
    stages = StageRules.from_config(config)
"""
from __future__ import annotations

import copy
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv

from analytics.lib.errors import ConfigError
from analytics.lib.logger import PROJECT_ROOT, setup_logger

CONFIG_PATH = PROJECT_ROOT / "configs" / "pipeline_analytics.yaml"

load_dotenv(PROJECT_ROOT / ".env")

logger = setup_logger("config")

NO_COMMITMENT = "No Commitment"

# ---------------------------------------------------------------------------
# Default configuration
# ---------------------------------------------------------------------------
DEFAULT_CONFIG: Dict[str, Any] = {
    # Logical field -> column header in the CRM opportunity export.
    "opportunity_columns": {
        "id": "Oportunidade ID",
        "account_id": "Conta ID",
        "account": "Conta",
        "representative": "Representante",
        "owner": "Responsável",
        "stage": "Etapa",
        "probability": "Prob.",
        "expected_close": "Previsão de Fechamento",
        "expected_value": "Valor Previsto",
        "closed_value": "Valor Fechado",
        "type": "Tipo de Oportunidade",
        "subtype": "Subtipo de Oportunidade",
        "origin": "Origem da Oportunidade",
        "closing_reason": "Motivo de Fechamento",
        "loss_reason": "Motivo da Perda",
        "competitors": "Concorrentes",
        "city": "Cidade",
        "state": "Estado",
        "segment": "CNAE Segmento",
        "created": ["Data", "Data de Criação", "Data Criação"],
    },
    "commitment_columns": {
        "opportunity_id": "Oportunidade ID",
        # Checked in order; the first non-empty value wins.
        "performer": ["Usuario", "Responsavel", "Usuário Ação"],
        "category": "Categoria",
        "activity": "Atividade",
        "date": "Data",
    },
    "stages": {
        "won": ["Fechada e Ganha", "Fechada e Ganha TR"],
        "lost": ["Fechada e Perdida"],
        "order": [
            "Prospecção",
            "Qualificação",
            "Negociação",
            "Fechada e Ganha",
            "Fechada e Ganha TR",
            "Fechada e Perdida",
        ],
    },
    "hot_probability_threshold": 75,
    "top_n": 10,
    "cache": {
        "enabled": True,
        "path": str(PROJECT_ROOT / "data" / "processed" / "pipeline_analysis_cache.json"),
    },
}


# ---------------------------------------------------------------------------
# Stage rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StageRules:
    """Terminal stage names and the display order used for stage filters."""
    won: frozenset
    lost: frozenset
    order: Tuple[str, ...]

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]] = None) -> "StageRules":
        stages = (config or DEFAULT_CONFIG).get("stages", DEFAULT_CONFIG["stages"])
        return cls(
            won=frozenset(stages.get("won", [])),
            lost=frozenset(stages.get("lost", [])),
            order=tuple(stages.get("order", [])),
        )

    def is_won(self, stage: str) -> bool:
        return stage in self.won

    def is_lost(self, stage: str) -> bool:
        return stage in self.lost

    def is_open(self, stage: str) -> bool:
        return stage not in self.won and stage not in self.lost


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base (in place) and return base."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _apply_env_overrides(config: Dict[str, Any]) -> None:
    threshold = os.getenv("HOT_PROBABILITY_THRESHOLD")
    if threshold:
        try:
            config["hot_probability_threshold"] = int(threshold)
        except ValueError:
            logger.warning(
                "Ignoring non-integer HOT_PROBABILITY_THRESHOLD=%r", threshold,
            )

    cache_path = os.getenv("RESULT_CACHE_PATH")
    if cache_path:
        config["cache"]["path"] = cache_path


def load_config(path: str | Path | None = None) -> Dict[str, Any]:
    """
    Build the effective configuration.

    Args:
        path: YAML file to merge over the defaults. When omitted, the
            project's configs/pipeline_analytics.yaml is used if present.

    Returns:
        A fresh configuration dict (never the DEFAULT_CONFIG object itself).

    Raises:
        ConfigError: if an explicit path is missing or the YAML is malformed.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Config file not found: {config_path}", str(config_path))
    else:
        config_path = CONFIG_PATH if CONFIG_PATH.exists() else None

    if config_path is not None:
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML: {e}", str(config_path)) from e
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping", str(config_path))
        _deep_merge(config, data)
        logger.debug("Loaded config overrides from %s", config_path)

    _apply_env_overrides(config)
    return config
