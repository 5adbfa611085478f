from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional

from infra.config import get_config
from logic.extraccion import (
    AtributosXml,
    extraer_atributos_xml,
    extraer_identificador,
    texto_plano,
)
from logic.modelos import ArchivoRegistro, Enlace, Movimiento, ResultadoXml


_CFG = get_config()
TOLERANCIA_XML = _CFG.auditoria.tolerancia_xml
_EPS = 1e-9


@dataclass(frozen=True)
class VistaXml:
    """Lo que la UI muestra en la columna 'Op. en XML' de un movimiento."""
    enlaces: tuple[Enlace, ...]
    automatica: Optional[ResultadoXml]


def textos_importe(importe: float) -> tuple[str, ...]:
    """Formas textuales buscadas en la linea: '250.75' / '1000' y '1000.00'."""
    objetivo = abs(float(importe))
    plano, dos_decimales = texto_plano(objetivo), f"{objetivo:.2f}"
    return (plano,) if plano == dos_decimales else (plano, dos_decimales)


def _dentro_tolerancia(attrs: AtributosXml, objetivo: float, tolerancia: float) -> bool:
    return any(abs(v - objetivo) <= tolerancia + _EPS for v in attrs.valores())


def _coincide_importe(contenido: str, textos: tuple[str, ...], objetivo: float, tolerancia: float) -> bool:
    # La subcadena es solo un pre-filtro; decide la tolerancia sobre vusd/vusdi
    if not any(t in contenido for t in textos):
        return False
    return _dentro_tolerancia(extraer_atributos_xml(contenido), objetivo, tolerancia)


def buscar_xml_automatico(
    movimiento: Movimiento,
    archivos: Iterable[ArchivoRegistro],
    tolerancia: float = TOLERANCIA_XML,
) -> Optional[ResultadoXml]:
    """Propone la linea XML del movimiento en dos pasadas.

    1. perfect: importe (texto + vusd/vusdi en tolerancia) y fecha en la linea
    2. amount:  solo importe, si la primera pasada no encontro nada

    Dentro de cada pasada gana la primera linea en orden de archivo y linea.
    """
    objetivo = abs(movimiento.importe)
    if objetivo < 0.005:
        return None
    textos = textos_importe(objetivo)
    fecha = (movimiento.fecha or "").strip()

    primera_por_importe: Optional[ResultadoXml] = None
    for archivo in archivos:
        for linea in archivo.lineas:
            if not _coincide_importe(linea.contenido, textos, objetivo, tolerancia):
                continue
            if fecha and fecha in linea.contenido:
                return ResultadoXml(archivo.id, archivo.nombre, linea.id, linea.contenido, "perfect")
            if primera_por_importe is None:
                primera_por_importe = ResultadoXml(archivo.id, archivo.nombre, linea.id, linea.contenido, "amount")
    return primera_por_importe


def coincidencia_visible(
    movimiento: Movimiento,
    archivos: Iterable[ArchivoRegistro],
    tolerancia: float = TOLERANCIA_XML,
) -> VistaXml:
    """Los vinculos manuales tienen prioridad y suprimen la sugerencia automatica."""
    if movimiento.xmls_vinculados:
        return VistaXml(enlaces=tuple(movimiento.xmls_vinculados), automatica=None)
    return VistaXml(enlaces=(), automatica=buscar_xml_automatico(movimiento, archivos, tolerancia))


def buscar_xml_manual(
    archivos: Iterable[ArchivoRegistro],
    importe: Optional[float] = None,
    fecha: str = "",
    identificador: str = "",
    tolerancia: float = TOLERANCIA_XML,
) -> list[ResultadoXml]:
    """Busqueda manual (cuando no hay sugerencia): por numero de declaracion o por importe.

    Devuelve primero las coincidencias con importe y fecha, luego el resto, en
    orden de archivo y linea.
    """
    objetivo = abs(importe) if importe else None
    ident = (identificador or "").strip()
    fecha = (fecha or "").strip()
    if objetivo is None and not ident:
        return []

    perfectas: list[ResultadoXml] = []
    resto: list[ResultadoXml] = []
    for archivo in archivos:
        for linea in archivo.lineas:
            por_ident = bool(ident) and extraer_identificador(linea.contenido) == ident
            por_importe = objetivo is not None and _dentro_tolerancia(
                extraer_atributos_xml(linea.contenido), objetivo, tolerancia
            )
            if not (por_ident or por_importe):
                continue
            if por_importe and fecha and fecha in linea.contenido:
                perfectas.append(ResultadoXml(archivo.id, archivo.nombre, linea.id, linea.contenido, "perfect"))
            else:
                resto.append(ResultadoXml(archivo.id, archivo.nombre, linea.id, linea.contenido, "amount"))
    return perfectas + resto
