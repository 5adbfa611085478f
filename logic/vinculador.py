from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional

from infra.config import get_config
from infra.logger import get_logger
from logic.extraccion import formatear_moneda, texto_plano
from logic.modelos import DeclaracionProcesada, Enlace, Movimiento


log = get_logger("vinculador")

_CFG = get_config()
TOLERANCIA_DECLARACIONES = _CFG.auditoria.tolerancia_declaraciones


@dataclass(frozen=True)
class CandidatoDeclaracion:
    nombre_archivo: str
    metadatos: Optional[DeclaracionProcesada]
    conflicto: Optional[str]      # descripcion del otro movimiento que ya la tiene
    seleccionado: bool

    @property
    def titulo(self) -> str:
        meta = self.metadatos
        if meta is None:
            return self.nombre_archivo
        base = f"Numeral {meta.numeral}" if meta.numeral else f"Dec. {meta.numero or 'S/N'}"
        return f"{base} - {formatear_moneda(meta.importe)}"


@dataclass(frozen=True)
class ResumenVinculacion:
    objetivo: float
    seleccionado: float
    restante: float
    estado: str                   # "exacto" / "faltante" / "excedente"


def _texto_busqueda(nombre_archivo: str, meta: Optional[DeclaracionProcesada]) -> str:
    if meta is None:
        return f"{nombre_archivo}    ".lower()
    return f"{nombre_archivo} {meta.numero} {texto_plano(meta.importe)} {meta.fecha} {meta.numeral}".lower()


class VinculadorDeclaraciones:
    """Vinculacion de un movimiento con una o varias declaraciones de cambio.

    Los conflictos (declaracion ya vinculada a otro movimiento) se resuelven con
    un indice nombre_archivo -> ids de movimiento, construido una vez por
    vinculador. Son advertencias: `guardar` nunca los bloquea.
    """

    def __init__(
        self,
        movimiento: Movimiento,
        disponibles: Iterable[str],
        procesadas: Iterable[DeclaracionProcesada] = (),
        movimientos: Iterable[Movimiento] = (),
    ):
        self.movimiento = movimiento
        self.disponibles = list(dict.fromkeys(disponibles))
        self._meta: dict[str, DeclaracionProcesada] = {}
        for d in procesadas:
            self._meta.setdefault(d.nombre_archivo, d)
        self._descripciones: dict[str, str] = {}
        self._indice: dict[str, list[str]] = {}
        for m in movimientos:
            self._descripciones[m.id] = m.descripcion
            for enlace in m.declaraciones_vinculadas:
                self._registrar(enlace.nombre_archivo_destino, m.id)

    def _registrar(self, nombre_archivo: str, movimiento_id: str) -> None:
        ids = self._indice.setdefault(nombre_archivo, [])
        if movimiento_id not in ids:
            ids.append(movimiento_id)

    # ---------------- consulta ----------------
    @property
    def vinculadas(self) -> list[str]:
        return [e.nombre_archivo_destino for e in self.movimiento.declaraciones_vinculadas]

    def metadatos(self, nombre_archivo: str) -> Optional[DeclaracionProcesada]:
        return self._meta.get(nombre_archivo)

    def total_seleccionado(self, seleccion: Iterable[str]) -> float:
        """Suma de importes con metadata; un archivo sin metadata aporta 0."""
        total = 0.0
        for nombre in dict.fromkeys(seleccion):
            meta = self._meta.get(nombre)
            if meta is not None:
                total += meta.importe
        return round(total, 2)

    def restante(self, seleccion: Iterable[str]) -> float:
        """>0 falta vincular, <0 se vinculo de mas, 0 exacto."""
        return round(abs(self.movimiento.importe) - self.total_seleccionado(seleccion), 2)

    @staticmethod
    def estado_restante(restante: float) -> str:
        if abs(restante) < TOLERANCIA_DECLARACIONES:
            return "exacto"
        return "faltante" if restante > 0 else "excedente"

    def resumen(self, seleccion: Iterable[str]) -> ResumenVinculacion:
        seleccion = list(seleccion)
        restante = self.restante(seleccion)
        return ResumenVinculacion(
            objetivo=round(abs(self.movimiento.importe), 2),
            seleccionado=self.total_seleccionado(seleccion),
            restante=restante,
            estado=self.estado_restante(restante),
        )

    def conflicto_para(self, nombre_archivo: str, excluir_movimiento_id: Optional[str] = None) -> Optional[str]:
        excluir = self.movimiento.id if excluir_movimiento_id is None else excluir_movimiento_id
        for movimiento_id in self._indice.get(nombre_archivo, []):
            if movimiento_id != excluir:
                return self._descripciones.get(movimiento_id, "")
        return None

    def candidatos(self, busqueda: str = "", seleccion: Optional[Iterable[str]] = None) -> list[CandidatoDeclaracion]:
        """Seleccionadas primero, luego alfabetico por nombre de archivo."""
        marcadas = set(self.vinculadas if seleccion is None else seleccion)
        termino = (busqueda or "").lower()

        items = []
        for nombre in self.disponibles:
            meta = self._meta.get(nombre)
            if termino and termino not in _texto_busqueda(nombre, meta):
                continue
            items.append(CandidatoDeclaracion(
                nombre_archivo=nombre,
                metadatos=meta,
                conflicto=self.conflicto_para(nombre),
                seleccionado=nombre in marcadas,
            ))
        items.sort(key=lambda c: (not c.seleccionado, c.nombre_archivo))
        return items

    # ---------------- mutacion ----------------
    def guardar(self, seleccion: Iterable[str]) -> list[tuple[str, str]]:
        """Reemplaza las declaraciones vinculadas del movimiento.

        No toca los vinculos de otros movimientos. Devuelve los conflictos
        [(nombre_archivo, descripcion_otro_movimiento)] para avisar al usuario.
        """
        nombres = list(dict.fromkeys(seleccion))
        anteriores = set(self.vinculadas)
        self.movimiento.declaraciones_vinculadas = [
            Enlace(tipo="declaration", etiqueta=n, nombre_archivo_destino=n) for n in nombres
        ]

        for nombre in anteriores - set(nombres):
            ids = self._indice.get(nombre, [])
            if self.movimiento.id in ids:
                ids.remove(self.movimiento.id)
        for nombre in nombres:
            self._registrar(nombre, self.movimiento.id)

        conflictos = []
        for nombre in nombres:
            otro = self.conflicto_para(nombre)
            if otro is not None:
                conflictos.append((nombre, otro))
                log.warning("Declaracion %s ya vinculada a otro movimiento: %s", nombre, otro)
        return conflictos
