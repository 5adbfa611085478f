"""Taxonomia cerrada de estados de cumplimiento por eje de revision.

Los estados se capturan como texto libre (historicamente cada auditor escribio
sus propias etiquetas). Aqui se traducen a un enum cerrado mediante una tabla
ordenada de reglas lexicas, de modo que el tablero y los reportes agrupen
valores viejos y nuevos sin migrar datos guardados.
"""
from __future__ import annotations
from enum import Enum
import re
import unicodedata


class EstadoCumplimiento(str, Enum):
    CONFORME = "CONFORME"
    EXTEMPORANEO = "EXTEMPORANEO"
    SIN_PRESENTAR = "SIN_PRESENTAR"
    PARCIAL = "PARCIAL"
    ERROR = "ERROR"
    PENDIENTE = "PENDIENTE"
    SIN_ESTADO = "SIN_ESTADO"   # texto vacio: aun no revisado
    NO_APLICA = "NO_APLICA"     # "N/A" de los movimientos informativos


# Orden de evaluacion: la primera regla que aplica gana.
#   ("exacto", texto)   -> etiqueta normalizada igual a texto
#   ("contiene", texto) -> subcadena
#   ("prefijo", texto)  -> inicio de palabra ("mal", "mala"; no "normal")
TABLA_ETIQUETAS: tuple[tuple[str, str, EstadoCumplimiento], ...] = (
    ("exacto", "n/a", EstadoCumplimiento.NO_APLICA),
    ("exacto", "na", EstadoCumplimiento.NO_APLICA),
    ("exacto", "o.k.", EstadoCumplimiento.CONFORME),
    ("exacto", "ok", EstadoCumplimiento.CONFORME),
    ("contiene", "oportunamente", EstadoCumplimiento.CONFORME),
    ("contiene", "extemporane", EstadoCumplimiento.EXTEMPORANEO),
    ("contiene", "sin legalizar", EstadoCumplimiento.SIN_PRESENTAR),
    ("contiene", "sin transmitir", EstadoCumplimiento.SIN_PRESENTAR),
    ("contiene", "sin presentar", EstadoCumplimiento.SIN_PRESENTAR),
    ("contiene", "parcial", EstadoCumplimiento.PARCIAL),
    ("contiene", "error", EstadoCumplimiento.ERROR),
    ("prefijo", "mal", EstadoCumplimiento.ERROR),
)

NO_HALLAZGO = frozenset({
    EstadoCumplimiento.CONFORME,
    EstadoCumplimiento.SIN_ESTADO,
    EstadoCumplimiento.NO_APLICA,
})

# Estados que llevan una operacion a la tabla de hallazgos destacados
ESTADOS_BANDERA = frozenset({
    EstadoCumplimiento.EXTEMPORANEO,
    EstadoCumplimiento.SIN_PRESENTAR,
    EstadoCumplimiento.PARCIAL,
    EstadoCumplimiento.ERROR,
})

# Etiquetas sugeridas para los selectores de la UI
OPCIONES_POR_EJE: dict[str, tuple[str, ...]] = {
    "documental": (
        "O.K.",
        "FALTA SOPORTE DOCUMENTAL",
        "SOPORTE PARCIAL",
        "ERROR EN SOPORTE",
    ),
    "banrep": (
        "O.K.",
        "TRANSMISIÓN EXTEMPORÁNEA",
        "SIN TRANSMITIR",
        "MAL NUMERAL CAMBIARIO",
        "ERROR EN VALOR TRANSMITIDO",
    ),
    "dian": (
        "LEGALIZADO OPORTUNAMENTE",
        "LEGALIZADO EXTEMPORANEO",
        "SIN LEGALIZAR",
        "LEGALIZACIÓN PARCIAL",
        "ERROR EN DECLARACIÓN",
    ),
}


def normalizar_etiqueta(texto: str | None) -> str:
    """Minusculas, sin tildes y con espacios colapsados."""
    normalized = unicodedata.normalize("NFKD", str(texto or ""))
    sin_tildes = "".join(ch for ch in normalized if not unicodedata.combining(ch))
    return re.sub(r"\s+", " ", sin_tildes).strip().lower()


def _aplica(modo: str, patron: str, etiqueta: str) -> bool:
    if modo == "exacto":
        return etiqueta == patron
    if modo == "contiene":
        return patron in etiqueta
    if modo == "prefijo":
        return re.search(rf"\b{re.escape(patron)}", etiqueta) is not None
    raise ValueError(f"Modo de regla desconocido: {modo!r}")


def clasificar_estado(texto: str | None) -> EstadoCumplimiento:
    etiqueta = normalizar_etiqueta(texto)
    if not etiqueta:
        return EstadoCumplimiento.SIN_ESTADO
    for modo, patron, estado in TABLA_ETIQUETAS:
        if _aplica(modo, patron, etiqueta):
            return estado
    return EstadoCumplimiento.PENDIENTE


def es_hallazgo(estado: EstadoCumplimiento) -> bool:
    """Estado no vacio y no conforme."""
    return estado not in NO_HALLAZGO
