from __future__ import annotations
from dataclasses import dataclass, field, asdict
from typing import Any, Optional
import uuid

from logic.clasificacion import clasificar_estado, es_hallazgo
from logic.extraccion import a_numero


EJES: tuple[str, ...] = ("documental", "banrep", "dian")
CAMPOS_EJE: tuple[str, ...] = ("estado", "estado_correccion", "fecha_correccion")
ESTADOS_CORRECCION: tuple[str, ...] = ("CORREGIDO", "SIN CORREGIR")
ESTADOS_REVISION_DECLARACION: tuple[str, ...] = ("pending", "approved", "correction_needed")


def nuevo_id(prefijo: str) -> str:
    return f"{prefijo}-{uuid.uuid4().hex[:9]}"


def _texto(valor: Any) -> str:
    if valor is None:
        return ""
    return str(valor)


def _opcional(valor: Any) -> Optional[str]:
    """'' y None se guardan como None (select vacio en la UI)."""
    if valor is None or valor == "":
        return None
    return str(valor)


# ==========================================================
# Revision por operacion
# ==========================================================
@dataclass
class RevisionEje:
    estado: str = ""                          # etiqueta libre (ver logic.clasificacion)
    estado_correccion: Optional[str] = None   # "CORREGIDO" / "SIN CORREGIR" / None
    fecha_correccion: Optional[str] = None    # AAAA-MM-DD

    @property
    def aplica_correccion(self) -> bool:
        """El seguimiento de correccion solo aplica si el estado es un hallazgo."""
        return es_hallazgo(clasificar_estado(self.estado))

    @classmethod
    def desde_dict(cls, data: dict | None) -> RevisionEje:
        data = data or {}
        return cls(
            estado=_texto(data.get("estado")),
            estado_correccion=_opcional(data.get("estado_correccion")),
            fecha_correccion=_opcional(data.get("fecha_correccion")),
        )


@dataclass
class DatosRevision:
    documental: RevisionEje = field(default_factory=RevisionEje)
    banrep: RevisionEje = field(default_factory=RevisionEje)
    dian: RevisionEje = field(default_factory=RevisionEje)
    comentarios: str = ""

    def eje(self, nombre: str) -> RevisionEje:
        if nombre not in EJES:
            raise ValueError(f"Eje de revision desconocido: {nombre!r}. Validos: {EJES}")
        return getattr(self, nombre)

    @classmethod
    def desde_dict(cls, data: dict | None) -> DatosRevision:
        data = data or {}
        return cls(
            documental=RevisionEje.desde_dict(data.get("documental")),
            banrep=RevisionEje.desde_dict(data.get("banrep")),
            dian=RevisionEje.desde_dict(data.get("dian")),
            comentarios=_texto(data.get("comentarios")),
        )


@dataclass
class Operacion:
    importe: float = 0.0
    incluir_en_revision: bool = True
    revision: DatosRevision = field(default_factory=DatosRevision)
    id: str = field(default_factory=lambda: nuevo_id("op"))

    @classmethod
    def desde_dict(cls, data: dict) -> Operacion:
        return cls(
            importe=a_numero(data.get("importe")),
            incluir_en_revision=bool(data.get("incluir_en_revision", True)),
            revision=DatosRevision.desde_dict(data.get("revision")),
            id=_texto(data.get("id")) or nuevo_id("op"),
        )


# ==========================================================
# Enlaces (referencias debiles por nombre/ubicacion)
# ==========================================================
@dataclass(frozen=True)
class Enlace:
    tipo: str                                 # "xml" o "declaration"
    etiqueta: str
    nombre_archivo_destino: str
    archivo_destino_id: Optional[str] = None
    linea_destino_id: Optional[str] = None

    @classmethod
    def desde_dict(cls, data: dict) -> Enlace:
        return cls(
            tipo=_texto(data.get("tipo")) or "declaration",
            etiqueta=_texto(data.get("etiqueta")),
            nombre_archivo_destino=_texto(data.get("nombre_archivo_destino")),
            archivo_destino_id=_opcional(data.get("archivo_destino_id")),
            linea_destino_id=_opcional(data.get("linea_destino_id")),
        )


@dataclass
class Movimiento:
    fecha: str                # AAAA-MM-DD (texto, tal como lo entrega la extraccion)
    descripcion: str
    importe: float            # total del extracto; fuente de verdad de la division
    archivo_origen: str = ""
    operaciones: list[Operacion] = field(default_factory=list)
    declaraciones_vinculadas: list[Enlace] = field(default_factory=list)
    xmls_vinculados: list[Enlace] = field(default_factory=list)
    id: str = field(default_factory=lambda: nuevo_id("mov"))

    def __post_init__(self) -> None:
        # Todo movimiento nace con al menos una operacion por el total
        if not self.operaciones:
            self.operaciones.append(Operacion(importe=self.importe))

    def operacion(self, operacion_id: str) -> Optional[Operacion]:
        for op in self.operaciones:
            if op.id == operacion_id:
                return op
        return None

    @property
    def total_operaciones(self) -> float:
        return sum(op.importe for op in self.operaciones)

    def a_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def desde_dict(cls, data: dict) -> Movimiento:
        return cls(
            fecha=_texto(data.get("fecha")),
            descripcion=_texto(data.get("descripcion")),
            importe=a_numero(data.get("importe")),
            archivo_origen=_texto(data.get("archivo_origen")),
            operaciones=[Operacion.desde_dict(o) for o in data.get("operaciones") or []],
            declaraciones_vinculadas=[Enlace.desde_dict(e) for e in data.get("declaraciones_vinculadas") or []],
            xmls_vinculados=[Enlace.desde_dict(e) for e in data.get("xmls_vinculados") or []],
            id=_texto(data.get("id")) or nuevo_id("mov"),
        )


# ==========================================================
# Archivos de registros (XML por lineas) y declaraciones
# ==========================================================
@dataclass
class LineaRegistro:
    id: str
    contenido: str
    estado: str = "pending"   # "pending" / "reviewed"
    comentario: str = ""


@dataclass
class ArchivoRegistro:
    id: str
    nombre: str
    lineas: list[LineaRegistro] = field(default_factory=list)

    def a_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DeclaracionProcesada:
    id: str
    nombre_archivo: str
    fecha: str = ""
    importe: float = 0.0
    numero: str = ""
    numeral: str = ""
    muestra_contenido: str = ""

    def a_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def desde_dict(cls, data: dict) -> DeclaracionProcesada:
        return cls(
            id=_texto(data.get("id")),
            nombre_archivo=_texto(data.get("nombre_archivo")),
            fecha=_texto(data.get("fecha")),
            importe=a_numero(data.get("importe")),
            numero=_texto(data.get("numero")),
            numeral=_texto(data.get("numeral")),
            muestra_contenido=_texto(data.get("muestra_contenido")),
        )


@dataclass
class RevisionDeclaracion:
    archivo_id: str
    nombre_archivo: str
    estado: str = "pending"   # "pending" / "approved" / "correction_needed"
    comentarios_auditor: str = ""
    revisado_por: str = ""
    revisado_en: Optional[str] = None

    def a_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def desde_dict(cls, data: dict) -> RevisionDeclaracion:
        return cls(
            archivo_id=_texto(data.get("archivo_id")),
            nombre_archivo=_texto(data.get("nombre_archivo")),
            estado=_texto(data.get("estado")) or "pending",
            comentarios_auditor=_texto(data.get("comentarios_auditor")),
            revisado_por=_texto(data.get("revisado_por")),
            revisado_en=_opcional(data.get("revisado_en")),
        )


# ==========================================================
# Resultados derivados (snapshots de solo lectura)
# ==========================================================
@dataclass(frozen=True)
class ResultadoAccion:
    ok: bool
    mensaje: str = ""


@dataclass(frozen=True)
class ResultadoXml:
    archivo_id: str
    nombre_archivo: str
    linea_id: str
    contenido: str
    tipo_coincidencia: str    # "perfect" o "amount"


@dataclass(frozen=True)
class UbicacionIdentificador:
    archivo_id: str
    linea_id: str
    vusd: Optional[float] = None
    vusdi: Optional[float] = None


@dataclass(frozen=True)
class GrupoIdentificadorDuplicado:
    identificador: str
    ubicaciones: tuple[UbicacionIdentificador, ...]
    total_vusd: float = 0.0
    total_vusdi: float = 0.0
