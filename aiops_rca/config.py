#!/usr/bin/env python
"""
协作框架配置
Thresholds and LLM settings, loadable from RCA_* environment variables or YAML.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from langchain_openai import ChatOpenAI
from opentelemetry import trace
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigError

# Suppress OpenTelemetry attribute warnings to reduce noise
logging.getLogger('opentelemetry.attributes').setLevel(logging.ERROR)

tracer = trace.get_tracer(__name__)

logger = logging.getLogger(__name__)

ENV_PREFIX = "RCA_"


class CollaborationConfig(BaseModel):
    """Recognised options, all optional."""

    anomaly_sigma: float = Field(3.0, gt=0, description="σ multiplier for metric anomalies")
    correlation_min: float = Field(0.7, description="Pearson |coef| threshold")
    pattern_min_count: int = Field(2, ge=1, description="Min repeats for a log pattern")
    drain_similarity: float = Field(0.5, description="Cluster-merge threshold")
    drain_max_depth: int = Field(4, ge=1, description="Drain prefix-tree depth hint")
    temporal_window_sec: float = Field(3600.0, description="Evidence temporal-correlation window")
    conflict_window_sec: float = Field(300.0, description="Same-service conflict window")
    critical_path_latency_ms: float = Field(1000.0, gt=0, description="Reference for latency scoring")

    llm_model: str = Field("gpt-3.5-turbo", description="Model id passed to Chat")
    llm_temperature: float = 0.1
    llm_timeout_sec: float = Field(30.0, gt=0)

    prompt_evidence_limit: int = 10
    prompt_finding_limit: int = 10
    prompt_hypothesis_limit: int = 5

    deadline: Optional[float] = Field(None, description="Whole-pipeline deadline in seconds")
    debug: bool = False

    @field_validator("correlation_min", "drain_similarity")
    @classmethod
    def _unit_interval(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("must be within [0, 1]")
        return value

    @field_validator("temporal_window_sec", "conflict_window_sec")
    @classmethod
    def _positive_window(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("window must be positive")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "CollaborationConfig":
        """Build a config from RCA_<OPTION> variables, e.g. RCA_ANOMALY_SIGMA=2.5."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigError(f"invalid environment configuration: {e}") from e

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "CollaborationConfig":
        path = Path(path)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot load config file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} must contain a mapping")
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"invalid config file {path}: {e}") from e

    def merged(self, **overrides: Any) -> "CollaborationConfig":
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return CollaborationConfig(**values)


def create_chat_model(config: Optional[CollaborationConfig] = None) -> Optional[ChatOpenAI]:
    """OpenAI-compatible chat model, or None when no API key is configured."""
    config = config or CollaborationConfig()
    api_key = os.getenv("OPENAI_API_KEY") or os.getenv("DASHSCOPE_API_KEY")
    if not api_key:
        logger.warning("⚠️ 未配置 OPENAI_API_KEY，LLM 分析将使用默认文本")
        return None

    return ChatOpenAI(
        model=config.llm_model,
        api_key=api_key,
        base_url=os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1"),
        temperature=config.llm_temperature,
        timeout=config.llm_timeout_sec,
        max_retries=int(os.getenv("LLM_MAX_RETRIES", "2")),
    )
