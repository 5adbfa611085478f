from __future__ import annotations
import yaml
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


RAIZ_PROYECTO = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class AppConfig:
    title: str
    page_layout: str
    fecha_vista_formato: str


@dataclass(frozen=True)
class AuditoriaConfig:
    tolerancia_xml: float
    tolerancia_division: float
    tolerancia_declaraciones: float
    limite_hallazgos: int
    limite_historial: int
    min_busqueda: int
    max_resultados_por_archivo: int


@dataclass(frozen=True)
class LoggingConfig:
    nivel: str
    formato: str


@dataclass(frozen=True)
class Config:
    app: AppConfig
    auditoria: AuditoriaConfig
    logging: LoggingConfig


def _resolver(path: str | Path) -> Path:
    """Rutas relativas se buscan primero en el cwd y luego en la raiz del proyecto."""
    p = Path(path)
    if p.is_absolute() or p.exists():
        return p
    return RAIZ_PROYECTO / p


def load_config(path: str | Path = "config.yaml") -> Config:
    with open(_resolver(path), "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)

    app = AppConfig(**data["app"])
    aud = AuditoriaConfig(**data["auditoria"])
    log = LoggingConfig(**data["logging"])

    return Config(app=app, auditoria=aud, logging=log)


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Config por defecto del proyecto, leida una sola vez por proceso."""
    return load_config("config.yaml")
