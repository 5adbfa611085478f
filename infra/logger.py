import logging
from typing import Optional

from infra.config import get_config


RAIZ = "auditoria"

_raiz: Optional[logging.Logger] = None


def _configurar_raiz() -> logging.Logger:
    global _raiz
    if _raiz is not None:
        return _raiz

    cfg = get_config().logging
    logger = logging.getLogger(RAIZ)
    logger.setLevel(cfg.nivel)

    ch = logging.StreamHandler()
    ch.setLevel(cfg.nivel)
    fmt = logging.Formatter(cfg.formato)
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    _raiz = logger
    return logger


def get_logger(name: str = RAIZ) -> logging.Logger:
    """Logger hijo de `auditoria`; el handler se instala una sola vez."""
    raiz = _configurar_raiz()
    if name == RAIZ:
        return raiz
    return raiz.getChild(name)
