from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable

from infra.config import get_config
from logic.extraccion import formatear_moneda, texto_plano
from logic.modelos import ArchivoRegistro, DeclaracionProcesada


_CFG = get_config()
MIN_BUSQUEDA = _CFG.auditoria.min_busqueda
MAX_POR_ARCHIVO = _CFG.auditoria.max_resultados_por_archivo


@dataclass(frozen=True)
class ResultadoBusqueda:
    tipo: str             # "declaration" o "xml"
    id: str               # id de la declaracion o de la linea
    titulo: str
    subtitulo: str
    detalle: dict[str, Any]


def _coincide_declaracion(decl: DeclaracionProcesada, termino: str) -> bool:
    return (
        termino in decl.numero.lower()
        or termino in texto_plano(decl.importe)
        or termino in decl.numeral.lower()
        or termino in decl.nombre_archivo.lower()
    )


def busqueda_general(
    termino: str,
    declaraciones: Iterable[DeclaracionProcesada],
    archivos: Iterable[ArchivoRegistro],
) -> list[ResultadoBusqueda]:
    """Busca en declaraciones procesadas y en lineas XML.

    Declaraciones primero, luego lineas XML en orden de archivo; a lo sumo
    MAX_POR_ARCHIVO lineas por archivo.
    """
    if not termino or len(termino) < MIN_BUSQUEDA:
        return []
    termino = termino.lower()

    resultados: list[ResultadoBusqueda] = []
    for decl in declaraciones:
        if not _coincide_declaracion(decl, termino):
            continue
        resultados.append(ResultadoBusqueda(
            tipo="declaration",
            id=decl.id,
            titulo=f"Declaración {decl.numero or 'S/N'}",
            subtitulo=f"{formatear_moneda(decl.importe)} - {decl.fecha} ({decl.nombre_archivo})",
            detalle={"nombre_archivo": decl.nombre_archivo},
        ))

    for archivo in archivos:
        encontrados = 0
        for idx, linea in enumerate(archivo.lineas):
            if encontrados >= MAX_POR_ARCHIVO:
                break
            if termino not in linea.contenido.lower():
                continue
            encontrados += 1
            resultados.append(ResultadoBusqueda(
                tipo="xml",
                id=linea.id,
                titulo=f"XML: {archivo.nombre}",
                subtitulo=f"Línea {idx + 1}: {linea.contenido.strip()[:60]}...",
                detalle={"archivo_id": archivo.id, "linea_id": linea.id},
            ))
    return resultados
