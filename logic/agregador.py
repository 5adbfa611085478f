from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable

import pandas as pd

from infra.config import get_config
from logic.clasificacion import (
    ESTADOS_BANDERA,
    EstadoCumplimiento,
    clasificar_estado,
    es_hallazgo,
)
from logic.modelos import EJES, Movimiento, Operacion, RevisionDeclaracion


_CFG = get_config()
LIMITE_HALLAZGOS = _CFG.auditoria.limite_hallazgos

# Ejes cuyo estado no conforme cuenta como hallazgo (DIAN se reporta aparte)
EJES_HALLAZGO: tuple[str, ...] = ("documental", "banrep")
LARGO_MIN_COMENTARIO = 5


@dataclass(frozen=True)
class FilaHallazgo:
    movimiento_id: str
    operacion_id: str
    fecha: str
    descripcion: str
    importe: float
    severidad: str            # "Crítico" / "Alerta"
    comentarios: str


@dataclass(frozen=True)
class EstadisticasAuditoria:
    total_movimientos: int
    total_operaciones: int
    operaciones_en_revision: int
    total_usd: float
    conteos: dict[str, dict[EstadoCumplimiento, int]]
    total_hallazgos: int
    correcciones_pendientes: dict[str, int]
    declaraciones_revisadas: int
    declaraciones_por_corregir: int
    hallazgos: tuple[FilaHallazgo, ...]

    def conteo(self, eje: str, estado: EstadoCumplimiento) -> int:
        return self.conteos[eje][estado]

    def porcentaje(self, eje: str, estado: EstadoCumplimiento) -> int:
        """Porcentaje entero sobre el total de operaciones (0 si no hay)."""
        if self.total_operaciones == 0:
            return 0
        return round(self.conteo(eje, estado) / self.total_operaciones * 100)


def _estados(op: Operacion) -> dict[str, EstadoCumplimiento]:
    return {eje: clasificar_estado(op.revision.eje(eje).estado) for eje in EJES}


def _es_bandera(estados: dict[str, EstadoCumplimiento], comentarios: str) -> bool:
    if any(e in ESTADOS_BANDERA for e in estados.values()):
        return True
    return len((comentarios or "").strip()) > LARGO_MIN_COMENTARIO


def _severidad(estados: dict[str, EstadoCumplimiento]) -> str:
    if EstadoCumplimiento.SIN_PRESENTAR in (estados["dian"], estados["banrep"]):
        return "Crítico"
    return "Alerta"


def calcular_estadisticas(
    movimientos: Iterable[Movimiento],
    revisiones: Iterable[RevisionDeclaracion] = (),
    limite_hallazgos: int = LIMITE_HALLAZGOS,
) -> EstadisticasAuditoria:
    """
    Recorre movimientos y operaciones y arma las cifras del tablero.

    - Se cuentan todas las operaciones; incluir_en_revision solo alimenta la
      cifra operaciones_en_revision. Los marcadores informativos quedan en N/A.
    - Un hallazgo por eje documental/BANREP con estado no vacio y no conforme.
    - La tabla de destacados conserva el orden de recorrido, sin reordenar.

    Funcion pura: no modifica sus entradas.
    """
    movimientos = list(movimientos)
    revisiones = list(revisiones)

    conteos = {eje: {estado: 0 for estado in EstadoCumplimiento} for eje in EJES}
    pendientes = {eje: 0 for eje in EJES}
    total_operaciones = 0
    en_revision = 0
    total_hallazgos = 0
    filas: list[FilaHallazgo] = []

    for mov in movimientos:
        for op in mov.operaciones:
            total_operaciones += 1
            if op.incluir_en_revision:
                en_revision += 1
            estados = _estados(op)
            for eje, estado in estados.items():
                conteos[eje][estado] += 1
                if op.revision.eje(eje).estado_correccion == "SIN CORREGIR":
                    pendientes[eje] += 1
            total_hallazgos += sum(1 for eje in EJES_HALLAZGO if es_hallazgo(estados[eje]))

            if len(filas) < limite_hallazgos and _es_bandera(estados, op.revision.comentarios):
                filas.append(FilaHallazgo(
                    movimiento_id=mov.id,
                    operacion_id=op.id,
                    fecha=mov.fecha,
                    descripcion=mov.descripcion,
                    importe=op.importe,
                    severidad=_severidad(estados),
                    comentarios=op.revision.comentarios,
                ))

    return EstadisticasAuditoria(
        total_movimientos=len(movimientos),
        total_operaciones=total_operaciones,
        operaciones_en_revision=en_revision,
        total_usd=round(sum(abs(m.importe) for m in movimientos), 2),
        conteos=conteos,
        total_hallazgos=total_hallazgos,
        correcciones_pendientes=pendientes,
        declaraciones_revisadas=len(revisiones),
        declaraciones_por_corregir=sum(1 for r in revisiones if r.estado == "correction_needed"),
        hallazgos=tuple(filas),
    )


# ==========================================================
# Vistas tabulares (reporte y UI)
# ==========================================================
COLUMNAS_OPERACIONES = [
    "fecha", "descripcion", "archivo_origen", "importe_movimiento", "importe_operacion",
    "incluir_en_revision",
    "documental", "documental_correccion", "documental_fecha_correccion",
    "banrep", "banrep_correccion", "banrep_fecha_correccion",
    "dian", "dian_correccion", "dian_fecha_correccion",
    "declaraciones", "xmls", "comentarios",
]


def operaciones_df(movimientos: Iterable[Movimiento]) -> pd.DataFrame:
    """Una fila por operacion; fecha como datetime para exportar con formato."""
    rows = []
    for mov in movimientos:
        for op in mov.operaciones:
            row = {
                "fecha": mov.fecha,
                "descripcion": mov.descripcion,
                "archivo_origen": mov.archivo_origen,
                "importe_movimiento": mov.importe,
                "importe_operacion": op.importe,
                "incluir_en_revision": op.incluir_en_revision,
            }
            for eje in EJES:
                rev = op.revision.eje(eje)
                row[eje] = rev.estado
                row[f"{eje}_correccion"] = rev.estado_correccion or ""
                row[f"{eje}_fecha_correccion"] = rev.fecha_correccion
            row["declaraciones"] = ", ".join(e.nombre_archivo_destino for e in mov.declaraciones_vinculadas)
            row["xmls"] = ", ".join(e.nombre_archivo_destino for e in mov.xmls_vinculados)
            row["comentarios"] = op.revision.comentarios
            rows.append(row)

    df = pd.DataFrame(rows, columns=COLUMNAS_OPERACIONES)
    for col in ["fecha", *(f"{eje}_fecha_correccion" for eje in EJES)]:
        df[col] = pd.to_datetime(df[col], errors="coerce")
    return df


def hallazgos_df(estadisticas: EstadisticasAuditoria) -> pd.DataFrame:
    rows = [
        {
            "fecha": f.fecha,
            "operacion": f.descripcion,
            "importe": f.importe,
            "estado": f.severidad,
            "comentarios": f.comentarios or "Sin comentario manual",
        }
        for f in estadisticas.hallazgos
    ]
    df = pd.DataFrame(rows, columns=["fecha", "operacion", "importe", "estado", "comentarios"])
    df["fecha"] = pd.to_datetime(df["fecha"], errors="coerce")
    return df


def resumen_ejes_df(estadisticas: EstadisticasAuditoria) -> pd.DataFrame:
    """Matriz estado x eje con los conteos del tablero."""
    data = {
        eje: [estadisticas.conteo(eje, estado) for estado in EstadoCumplimiento]
        for eje in EJES
    }
    df = pd.DataFrame(data, index=[estado.value for estado in EstadoCumplimiento])
    return df.rename_axis("estado").reset_index()


def hojas_reporte(
    movimientos: Iterable[Movimiento],
    revisiones: Iterable[RevisionDeclaracion] = (),
) -> dict[str, pd.DataFrame]:
    """Hojas del libro Excel de la auditoria, en orden."""
    movimientos = list(movimientos)
    revisiones = list(revisiones)
    estadisticas = calcular_estadisticas(movimientos, revisiones)

    resumen = pd.DataFrame([
        {"indicador": "Movimientos", "valor": estadisticas.total_movimientos},
        {"indicador": "Operaciones", "valor": estadisticas.total_operaciones},
        {"indicador": "Total auditado (USD)", "valor": estadisticas.total_usd},
        {"indicador": "Hallazgos", "valor": estadisticas.total_hallazgos},
        {"indicador": "Declaraciones revisadas", "valor": estadisticas.declaraciones_revisadas},
        {"indicador": "Correcciones requeridas", "valor": estadisticas.declaraciones_por_corregir},
    ])
    revisiones_df = pd.DataFrame(
        [r.a_dict() for r in revisiones],
        columns=["archivo_id", "nombre_archivo", "estado", "comentarios_auditor", "revisado_por", "revisado_en"],
    )
    return {
        "Resumen": resumen,
        "Operaciones": operaciones_df(movimientos),
        "Ejes": resumen_ejes_df(estadisticas),
        "Hallazgos": hallazgos_df(estadisticas),
        "Declaraciones": revisiones_df,
    }
