from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_EXTENSIONS = (".js", ".ts", ".mjs")
DEFAULT_FRAMEWORKS = ("express", "fastify", "koa")
DEFAULT_MAX_FILES = 1000

AI_MAX_FILE_SIZE = 1 * 1024 * 1024
TEMPLATE_MAX_FILE_SIZE = 10 * 1024 * 1024

OUTPUT_FORMATS = ("json", "yaml")

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_MODEL = "meta-llama/llama-4-scout-17b-16e-instruct"


class ScanConfig(BaseModel):
    """Options recognized by a scan run."""

    extensions: list[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_dirs: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    frameworks: list[str] = Field(default_factory=lambda: list(DEFAULT_FRAMEWORKS))
    max_files: int = Field(default=DEFAULT_MAX_FILES, ge=1)
    max_file_size_bytes: Optional[int] = Field(default=None, gt=0)
    ai_enabled: bool = False

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(cls, v: list[str]) -> list[str]:
        out = []
        for ext in v:
            ext = ext.strip().lower()
            if not ext:
                continue
            if not ext.startswith("."):
                ext = "." + ext
            if ext not in out:
                out.append(ext)
        if not out:
            raise ValueError("at least one file extension is required")
        return out

    @field_validator("frameworks")
    @classmethod
    def _normalize_frameworks(cls, v: list[str]) -> list[str]:
        return [f.strip().lower() for f in v if f.strip()]

    def effective_max_file_size(self) -> int:
        # handler source gets shipped to the service in AI mode, keep inputs smaller
        if self.max_file_size_bytes is not None:
            return self.max_file_size_bytes
        return AI_MAX_FILE_SIZE if self.ai_enabled else TEMPLATE_MAX_FILE_SIZE


class SpecInfo(BaseModel):
    title: str = "API Documentation"
    version: str = "1.0.0"
    description: str = "Generated API documentation"
    base_url: str = "http://localhost:3000"


class GenerativeSettings(BaseModel):
    api_key: Optional[str] = None
    base_url: str = GROQ_BASE_URL
    model: str = DEFAULT_MODEL
    temperature: float = 0.1
    max_tokens: int = 1500
    timeout_s: float = 30.0
    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: float = 1.0
    batch_size: int = Field(default=3, ge=1)
    request_delay: float = 0.5
    batch_delay: float = 1.0

    @classmethod
    def from_env(cls, **overrides) -> "GenerativeSettings":
        values = {
            "api_key": os.environ.get("GROQ_API_KEY"),
            "base_url": os.environ.get("ROUTESCRIBE_BASE_URL") or GROQ_BASE_URL,
            "model": os.environ.get("ROUTESCRIBE_MODEL") or DEFAULT_MODEL,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
