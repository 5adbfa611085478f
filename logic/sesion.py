from __future__ import annotations
from datetime import datetime
from typing import Iterable, Optional
import copy

from infra.config import get_config
from infra.logger import get_logger
from logic.agregador import EstadisticasAuditoria, calcular_estadisticas
from logic.catalogo import CatalogoRegistros
from logic.emparejador_xml import VistaXml, coincidencia_visible
from logic.extraccion import a_numero, texto_a_numero, texto_plano
from logic.ingesta import archivo_desde_dict
from logic.modelos import (
    CAMPOS_EJE,
    ESTADOS_CORRECCION,
    ESTADOS_REVISION_DECLARACION,
    ArchivoRegistro,
    DeclaracionProcesada,
    Enlace,
    LineaRegistro,
    Movimiento,
    Operacion,
    ResultadoAccion,
    RevisionDeclaracion,
)
from logic.vinculador import VinculadorDeclaraciones


log = get_logger("sesion")

_CFG = get_config()
TOLERANCIA_DIVISION = _CFG.auditoria.tolerancia_division


def diferencia_division(movimiento: Movimiento) -> float:
    """importe del movimiento menos la suma de sus operaciones. Solo informativo."""
    return round(movimiento.importe - movimiento.total_operaciones, 2)


def division_valida(movimiento: Movimiento, tolerancia: float = TOLERANCIA_DIVISION) -> bool:
    return abs(movimiento.importe - movimiento.total_operaciones) < tolerancia


def filtrar_movimientos(
    movimientos: Iterable[Movimiento],
    anio: str = "",
    mes: str = "",
    descripcion: str = "",
    importe: str = "",
    orden: str = "asc",
) -> list[Movimiento]:
    """Filtra por año, mes ("01".."12"), descripcion e importe (subcadena) y ordena por fecha."""
    desc = (descripcion or "").lower()
    out = []
    for m in movimientos:
        if anio and not m.fecha.startswith(anio):
            continue
        if mes:
            partes = m.fecha.split("-")
            if len(partes) < 2 or partes[1] != mes:
                continue
        if desc and desc not in m.descripcion.lower():
            continue
        if importe and importe not in texto_plano(m.importe):
            continue
        out.append(m)
    return sorted(out, key=lambda m: m.fecha, reverse=(orden == "desc"))


def anios_disponibles(movimientos: Iterable[Movimiento]) -> list[str]:
    return sorted({m.fecha[:4] for m in movimientos if m.fecha})


class SesionAuditoria:
    """Estado editable de una auditoria: movimientos, XML, declaraciones y revisiones.

    Un unico controlador es dueño del arbol Movimiento -> Operacion -> revision;
    todas las mutaciones pasan por aqui, se aplican en el acto y quedan en el
    historial de deshacer.
    """

    def __init__(
        self,
        movimientos: Iterable[Movimiento] = (),
        archivos: Iterable[ArchivoRegistro] = (),
        declaraciones: Iterable[DeclaracionProcesada] = (),
        declaraciones_disponibles: Optional[Iterable[str]] = None,
        revisiones: Iterable[RevisionDeclaracion] = (),
        limite_historial: int = _CFG.auditoria.limite_historial,
    ):
        self.movimientos: list[Movimiento] = list(movimientos)
        self.catalogo = CatalogoRegistros(archivos)
        self.declaraciones: list[DeclaracionProcesada] = list(declaraciones)
        if declaraciones_disponibles is None:
            declaraciones_disponibles = [d.nombre_archivo for d in self.declaraciones]
        self.declaraciones_disponibles: list[str] = list(dict.fromkeys(declaraciones_disponibles))
        self.revisiones: list[RevisionDeclaracion] = list(revisiones)
        self.limite_historial = limite_historial
        self._pasado: list[list[Movimiento]] = []
        self._futuro: list[list[Movimiento]] = []

    # ==========================================================
    # Historial
    # ==========================================================
    def _registrar(self) -> None:
        self._pasado.append(copy.deepcopy(self.movimientos))
        if len(self._pasado) > self.limite_historial:
            self._pasado.pop(0)
        self._futuro.clear()

    @property
    def puede_deshacer(self) -> bool:
        return bool(self._pasado)

    @property
    def puede_rehacer(self) -> bool:
        return bool(self._futuro)

    def deshacer(self) -> bool:
        if not self._pasado:
            return False
        self._futuro.append(self.movimientos)
        self.movimientos = self._pasado.pop()
        return True

    def rehacer(self) -> bool:
        if not self._futuro:
            return False
        self._pasado.append(self.movimientos)
        self.movimientos = self._futuro.pop()
        return True

    # ==========================================================
    # Busqueda
    # ==========================================================
    def movimiento(self, movimiento_id: str) -> Optional[Movimiento]:
        for m in self.movimientos:
            if m.id == movimiento_id:
                return m
        return None

    def _operacion(self, movimiento_id: str, operacion_id: str) -> tuple[Optional[Movimiento], Optional[Operacion]]:
        mov = self.movimiento(movimiento_id)
        if mov is None:
            return None, None
        return mov, mov.operacion(operacion_id)

    # ==========================================================
    # Movimientos y divisiones
    # ==========================================================
    def agregar_movimientos(self, movimientos: Iterable[Movimiento]) -> int:
        nuevos = list(movimientos)
        if not nuevos:
            return 0
        self._registrar()
        self.movimientos.extend(nuevos)
        return len(nuevos)

    def eliminar_movimiento(self, movimiento_id: str) -> bool:
        """Borra el movimiento con sus operaciones y vinculos."""
        if self.movimiento(movimiento_id) is None:
            return False
        self._registrar()
        self.movimientos = [m for m in self.movimientos if m.id != movimiento_id]
        return True

    def agregar_division(self, movimiento_id: str) -> Optional[Operacion]:
        mov = self.movimiento(movimiento_id)
        if mov is None:
            log.warning("Dividir: movimiento inexistente %s", movimiento_id)
            return None
        self._registrar()
        op = Operacion(importe=0.0, incluir_en_revision=True)
        mov.operaciones.append(op)
        return op

    def eliminar_division(self, movimiento_id: str, operacion_id: str) -> ResultadoAccion:
        mov, op = self._operacion(movimiento_id, operacion_id)
        if mov is None or op is None:
            return ResultadoAccion(False, "Operación no encontrada.")
        if len(mov.operaciones) <= 1:
            log.warning("Se intento eliminar la unica operacion de %s", movimiento_id)
            return ResultadoAccion(False, "No se puede eliminar la única operación.")
        self._registrar()
        mov.operaciones = [o for o in mov.operaciones if o.id != operacion_id]
        return ResultadoAccion(True)

    def fijar_importe_operacion(self, movimiento_id: str, operacion_id: str, valor) -> bool:
        """Acepta cualquier numero finito; lo no numerico queda en 0."""
        _, op = self._operacion(movimiento_id, operacion_id)
        if op is None:
            return False
        importe = a_numero(valor)
        if isinstance(valor, str) and texto_a_numero(valor) is None:
            log.debug("Importe no numerico %r, se usa 0", valor)
        self._registrar()
        op.importe = importe
        return True

    def fijar_incluir_en_revision(self, movimiento_id: str, operacion_id: str, incluir: bool) -> bool:
        _, op = self._operacion(movimiento_id, operacion_id)
        if op is None:
            return False
        self._registrar()
        op.incluir_en_revision = bool(incluir)
        return True

    # ==========================================================
    # Revision por eje
    # ==========================================================
    def actualizar_revision_eje(self, movimiento_id: str, operacion_id: str, eje: str, campo: str, valor) -> bool:
        """Cambia un solo campo de un solo eje; los otros dos ejes no se tocan."""
        if campo not in CAMPOS_EJE:
            raise ValueError(f"Campo de revision desconocido: {campo!r}. Validos: {CAMPOS_EJE}")
        _, op = self._operacion(movimiento_id, operacion_id)
        if op is None:
            return False
        revision_eje = op.revision.eje(eje)

        if campo == "estado":
            nuevo = "" if valor is None else str(valor)
        else:
            nuevo = None if valor in (None, "") else str(valor)
            if campo == "estado_correccion" and nuevo is not None and nuevo not in ESTADOS_CORRECCION:
                raise ValueError(f"Estado de correccion invalido: {valor!r}. Validos: {ESTADOS_CORRECCION}")

        self._registrar()
        setattr(revision_eje, campo, nuevo)
        return True

    def actualizar_comentarios(self, movimiento_id: str, operacion_id: str, comentarios: str) -> bool:
        _, op = self._operacion(movimiento_id, operacion_id)
        if op is None:
            return False
        self._registrar()
        op.revision.comentarios = comentarios or ""
        return True

    # ==========================================================
    # Vinculos XML
    # ==========================================================
    def vincular_xml(self, movimiento_id: str, archivo_id: str, linea_id: str) -> Optional[Enlace]:
        mov = self.movimiento(movimiento_id)
        archivo = self.catalogo.archivo(archivo_id)
        if mov is None or archivo is None or self.catalogo.ubicar(archivo_id, linea_id) is None:
            log.warning("Vinculo XML invalido: %s -> %s/%s", movimiento_id, archivo_id, linea_id)
            return None
        for e in mov.xmls_vinculados:
            if e.archivo_destino_id == archivo_id and e.linea_destino_id == linea_id:
                return e
        enlace = Enlace(
            tipo="xml",
            etiqueta=f"XML: {archivo.nombre}",
            nombre_archivo_destino=archivo.nombre,
            archivo_destino_id=archivo_id,
            linea_destino_id=linea_id,
        )
        self._registrar()
        mov.xmls_vinculados.append(enlace)
        return enlace

    def desvincular_xml(self, movimiento_id: str, archivo_id: str, linea_id: str) -> bool:
        mov = self.movimiento(movimiento_id)
        if mov is None:
            return False
        restantes = [
            e for e in mov.xmls_vinculados
            if not (e.archivo_destino_id == archivo_id and e.linea_destino_id == linea_id)
        ]
        if len(restantes) == len(mov.xmls_vinculados):
            return False
        self._registrar()
        mov.xmls_vinculados = restantes
        return True

    def coincidencia_xml(self, movimiento_id: str) -> Optional[VistaXml]:
        mov = self.movimiento(movimiento_id)
        if mov is None:
            return None
        return coincidencia_visible(mov, self.catalogo.archivos)

    def linea_vinculada(self, enlace: Enlace) -> Optional[LineaRegistro]:
        """Destino de navegacion de un enlace XML (None si el archivo ya no esta)."""
        if enlace.archivo_destino_id is None or enlace.linea_destino_id is None:
            return None
        return self.catalogo.ubicar(enlace.archivo_destino_id, enlace.linea_destino_id)

    # ==========================================================
    # Vinculos con declaraciones
    # ==========================================================
    def vinculador(self, movimiento_id: str) -> Optional[VinculadorDeclaraciones]:
        mov = self.movimiento(movimiento_id)
        if mov is None:
            return None
        return VinculadorDeclaraciones(
            movimiento=mov,
            disponibles=self.declaraciones_disponibles,
            procesadas=self.declaraciones,
            movimientos=self.movimientos,
        )

    def guardar_declaraciones(self, movimiento_id: str, seleccion: Iterable[str]) -> list[tuple[str, str]]:
        """Reemplaza las declaraciones del movimiento; devuelve los conflictos (avisos)."""
        if self.movimiento(movimiento_id) is None:
            return []
        self._registrar()
        return self.vinculador(movimiento_id).guardar(seleccion)

    def agregar_vinculo_declaracion(self, movimiento_id: str, nombre_archivo: str) -> bool:
        mov = self.movimiento(movimiento_id)
        if mov is None:
            return False
        actuales = [e.nombre_archivo_destino for e in mov.declaraciones_vinculadas]
        if nombre_archivo in actuales:
            return True
        self.guardar_declaraciones(movimiento_id, [*actuales, nombre_archivo])
        return True

    def quitar_vinculo_declaracion(self, movimiento_id: str, nombre_archivo: str) -> bool:
        mov = self.movimiento(movimiento_id)
        if mov is None:
            return False
        actuales = [e.nombre_archivo_destino for e in mov.declaraciones_vinculadas]
        if nombre_archivo not in actuales:
            return False
        self.guardar_declaraciones(movimiento_id, [n for n in actuales if n != nombre_archivo])
        return True

    # ==========================================================
    # Revision de declaraciones (PDF)
    # ==========================================================
    def revision_declaracion(self, archivo_id: str) -> Optional[RevisionDeclaracion]:
        for r in self.revisiones:
            if r.archivo_id == archivo_id:
                return r
        return None

    def actualizar_revision_declaracion(
        self,
        archivo_id: str,
        nombre_archivo: str,
        estado: Optional[str] = None,
        comentarios_auditor: Optional[str] = None,
        revisor: str = "",
    ) -> RevisionDeclaracion:
        if estado is not None and estado not in ESTADOS_REVISION_DECLARACION:
            raise ValueError(f"Estado de revision invalido: {estado!r}. Validos: {ESTADOS_REVISION_DECLARACION}")
        revision = self.revision_declaracion(archivo_id)
        if revision is None:
            revision = RevisionDeclaracion(archivo_id=archivo_id, nombre_archivo=nombre_archivo)
            self.revisiones.append(revision)
        if estado is not None:
            revision.estado = estado
        if comentarios_auditor is not None:
            revision.comentarios_auditor = comentarios_auditor
        revision.revisado_por = revisor or revision.revisado_por
        revision.revisado_en = datetime.now().isoformat(timespec="seconds")
        return revision

    # ==========================================================
    # Derivados y persistencia
    # ==========================================================
    def estadisticas(self) -> EstadisticasAuditoria:
        return calcular_estadisticas(self.movimientos, self.revisiones)

    def exportar_estado(self) -> dict:
        """Arbol plano y serializable para el colaborador de persistencia."""
        return {
            "movimientos": [m.a_dict() for m in self.movimientos],
            "archivos": [a.a_dict() for a in self.catalogo.archivos],
            "declaraciones": [d.a_dict() for d in self.declaraciones],
            "declaraciones_disponibles": list(self.declaraciones_disponibles),
            "revisiones": [r.a_dict() for r in self.revisiones],
        }

    @classmethod
    def desde_estado(cls, data: dict) -> SesionAuditoria:
        if not isinstance(data, dict):
            if data:
                log.warning("Estado de sesion ignorado: se esperaba un objeto, llego %s", type(data).__name__)
            data = {}
        return cls(
            movimientos=[Movimiento.desde_dict(m) for m in data.get("movimientos") or []],
            archivos=[archivo_desde_dict(a) for a in data.get("archivos") or []],
            declaraciones=[DeclaracionProcesada.desde_dict(d) for d in data.get("declaraciones") or []],
            declaraciones_disponibles=data.get("declaraciones_disponibles"),
            revisiones=[RevisionDeclaracion.desde_dict(r) for r in data.get("revisiones") or []],
        )
