from __future__ import annotations
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Optional
import math
import re


# Atributos numericos de una linea de operacion de cambio
ATRIBUTOS_VALOR: tuple[str, ...] = ("vusd", "vusdi")
# Atributos con el numero de declaracion, en orden de preferencia
ATRIBUTOS_IDENTIFICADOR: tuple[str, ...] = ("ndec", "ndeci", "ndex")


def _patron_atributo(nombre: str) -> re.Pattern:
    # \b + "=" evita que "vusd" capture el valor de "vusdi"
    return re.compile(rf'\b{nombre}\s*=\s*"([^"]*)"', re.IGNORECASE)


_PATRONES = {n: _patron_atributo(n) for n in (*ATRIBUTOS_VALOR, *ATRIBUTOS_IDENTIFICADOR)}
_PATRON_IMPORTE = re.compile(r"^[\s$€]*[-+]?[\d.,]+\s*$")


@dataclass(frozen=True)
class AtributosXml:
    vusd: Optional[float] = None
    vusdi: Optional[float] = None

    def valores(self) -> list[float]:
        """Solo los atributos presentes; un atributo ausente nunca cuenta como 0."""
        return [v for v in (self.vusd, self.vusdi) if v is not None]


def texto_a_numero(texto: str | None) -> Optional[float]:
    """Convierte '1.234,56', '1,234.56', '$ 250.75' o '250,75' a float. None si no es numerico."""
    if texto is None:
        return None
    crudo = str(texto).strip()
    try:
        numero = float(crudo)
    except ValueError:
        pass
    else:
        return numero if math.isfinite(numero) else None
    # Solo importes con simbolo de moneda y separadores; "abc7" no es un importe
    if not _PATRON_IMPORTE.match(crudo):
        return None
    s = re.sub(r"[^0-9,.\-+]", "", crudo)
    if "," in s and "." in s:
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        s = s.replace(",", ".")
    try:
        numero = float(s)
    except ValueError:
        return None
    if not math.isfinite(numero):
        return None
    return numero


def a_numero(valor, defecto: float = 0.0) -> float:
    """Coercion tolerante de importes editados o extraidos. Nunca lanza."""
    if isinstance(valor, bool) or valor is None:
        return defecto
    if isinstance(valor, (Integral, Real)):
        numero = float(valor)
        return numero if math.isfinite(numero) else defecto
    numero = texto_a_numero(valor) if isinstance(valor, str) else None
    return defecto if numero is None else numero


def _valor_atributo(contenido: str, nombre: str) -> Optional[str]:
    m = _PATRONES[nombre].search(contenido or "")
    if not m:
        return None
    return m.group(1).strip()


def extraer_atributos_xml(contenido: str) -> AtributosXml:
    return AtributosXml(
        vusd=texto_a_numero(_valor_atributo(contenido, "vusd")),
        vusdi=texto_a_numero(_valor_atributo(contenido, "vusdi")),
    )


def extraer_identificador(contenido: str) -> Optional[str]:
    """Numero de declaracion de la linea (ndec, ndeci o ndex); None si no tiene."""
    for nombre in ATRIBUTOS_IDENTIFICADOR:
        valor = _valor_atributo(contenido, nombre)
        if valor:
            return valor
    return None


def texto_plano(valor: float) -> str:
    """Representacion corta de un importe: 1000.0 -> '1000', 250.75 -> '250.75'."""
    numero = float(valor)
    if numero.is_integer():
        return str(int(numero))
    return repr(numero)


def formatear_moneda(valor: float, decimales: int = 2) -> str:
    """Formato es-CO: 1234567.5 -> '1.234.567,50'."""
    return f"{float(valor):,.{decimales}f}".replace(",", "X").replace(".", ",").replace("X", ".")
