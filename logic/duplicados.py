from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass
from typing import Iterable, Optional

from logic.extraccion import extraer_atributos_xml, extraer_identificador
from logic.modelos import (
    ArchivoRegistro,
    GrupoIdentificadorDuplicado,
    LineaRegistro,
    UbicacionIdentificador,
)


@dataclass(frozen=True)
class ResumenDuplicados:
    total_vusd: float
    total_vusdi: float
    total_ubicaciones: int
    total_grupos: int


@dataclass(frozen=True)
class SumaAtributo:
    suma: float
    cantidad: int


@dataclass(frozen=True)
class ResumenSeleccion:
    vusd: Optional[SumaAtributo]
    vusdi: Optional[SumaAtributo]


@dataclass(frozen=True)
class EstadisticasXml:
    total_lineas: int
    lineas_revisadas: int
    lineas_pendientes: int
    total_archivos: int

    @property
    def porcentaje_revisado(self) -> int:
        if self.total_lineas == 0:
            return 0
        return round(self.lineas_revisadas / self.total_lineas * 100)


def agrupar_duplicados(archivos: Iterable[ArchivoRegistro]) -> tuple[GrupoIdentificadorDuplicado, ...]:
    """Agrupa las lineas que comparten numero de declaracion entre todos los archivos.

    - Solo identificadores no vacios
    - Un identificador con una sola ubicacion no es duplicado y se descarta
    - Los grupos salen en el orden en que aparece su primer identificador
    """
    por_identificador: dict[str, list[UbicacionIdentificador]] = defaultdict(list)
    for archivo in archivos:
        for linea in archivo.lineas:
            ident = extraer_identificador(linea.contenido)
            if not ident:
                continue
            attrs = extraer_atributos_xml(linea.contenido)
            por_identificador[ident].append(UbicacionIdentificador(
                archivo_id=archivo.id,
                linea_id=linea.id,
                vusd=attrs.vusd,
                vusdi=attrs.vusdi,
            ))

    grupos: list[GrupoIdentificadorDuplicado] = []
    for ident, ubicaciones in por_identificador.items():
        if len(ubicaciones) < 2:
            continue
        grupos.append(GrupoIdentificadorDuplicado(
            identificador=ident,
            ubicaciones=tuple(ubicaciones),
            total_vusd=round(sum(u.vusd or 0.0 for u in ubicaciones), 2),
            total_vusdi=round(sum(u.vusdi or 0.0 for u in ubicaciones), 2),
        ))
    return tuple(grupos)


def resumen_duplicados(grupos: Iterable[GrupoIdentificadorDuplicado]) -> ResumenDuplicados:
    grupos = list(grupos)
    return ResumenDuplicados(
        total_vusd=round(sum(g.total_vusd for g in grupos), 2),
        total_vusdi=round(sum(g.total_vusdi for g in grupos), 2),
        total_ubicaciones=sum(len(g.ubicaciones) for g in grupos),
        total_grupos=len(grupos),
    )


def resumen_seleccion(lineas: Iterable[LineaRegistro]) -> ResumenSeleccion:
    """Suma de vusd / vusdi de las lineas marcadas; None si ningun atributo aparece."""
    vusd: list[float] = []
    vusdi: list[float] = []
    for linea in lineas:
        attrs = extraer_atributos_xml(linea.contenido)
        if attrs.vusd is not None:
            vusd.append(attrs.vusd)
        if attrs.vusdi is not None:
            vusdi.append(attrs.vusdi)
    return ResumenSeleccion(
        vusd=SumaAtributo(round(sum(vusd), 2), len(vusd)) if vusd else None,
        vusdi=SumaAtributo(round(sum(vusdi), 2), len(vusdi)) if vusdi else None,
    )


def estadisticas_xml(archivos: Iterable[ArchivoRegistro]) -> EstadisticasXml:
    archivos = list(archivos)
    total = sum(len(a.lineas) for a in archivos)
    revisadas = sum(1 for a in archivos for l in a.lineas if l.estado == "reviewed")
    return EstadisticasXml(
        total_lineas=total,
        lineas_revisadas=revisadas,
        lineas_pendientes=total - revisadas,
        total_archivos=len(archivos),
    )
