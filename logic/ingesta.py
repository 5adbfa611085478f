from __future__ import annotations

import math
from numbers import Integral, Real
from typing import Any, Iterable, Mapping

import pandas as pd

from infra.logger import get_logger
from logic.extraccion import a_numero, texto_a_numero
from logic.modelos import (
    ArchivoRegistro,
    DatosRevision,
    DeclaracionProcesada,
    LineaRegistro,
    Movimiento,
    Operacion,
    RevisionEje,
    nuevo_id,
)


log = get_logger("ingesta")

COMENTARIO_REGISTRO_INCOMPLETO = "Registro extraído incompleto: revisar fecha, descripción o importe."
COMENTARIO_SIN_TRANSACCIONES = "Verificación automática: Sin transacciones detectadas."


def _campo(registro: Mapping[str, Any], *nombres: str) -> Any:
    """Primer campo presente; la extraccion entrega claves en ingles o en castellano."""
    for nombre in nombres:
        if nombre in registro and registro[nombre] is not None:
            return registro[nombre]
    return None


def _normalizar_descripcion(valor) -> str:
    """Devuelve siempre texto sin sufijos `.0` cuando provienen de números."""
    if valor is None or (isinstance(valor, float) and math.isnan(valor)):
        return ""
    if isinstance(valor, str):
        return valor.strip()
    if isinstance(valor, bool):
        return str(valor)
    if isinstance(valor, Integral):
        return str(int(valor))
    if isinstance(valor, Real):
        numero = float(valor)
        if math.isfinite(numero) and numero.is_integer():
            return str(int(numero))
        return str(valor)
    return str(valor)


def normalizar_fecha(valor) -> str:
    """AAAA-MM-DD o '' si pandas no la reconoce. Acepta '2024-03-01' y '01/03/2024'."""
    if valor is None or valor == "":
        return ""
    texto = str(valor).strip()
    fecha = pd.to_datetime(texto, errors="coerce", format="ISO8601")
    if pd.isna(fecha):
        fecha = pd.to_datetime(texto, errors="coerce", dayfirst=True)
    if pd.isna(fecha):
        return ""
    return fecha.strftime("%Y-%m-%d")


def _importe(valor) -> tuple[float, bool]:
    """(importe, valido). Lo no numerico queda en 0 y marcado invalido."""
    if isinstance(valor, str):
        numero = texto_a_numero(valor)
        return (0.0, False) if numero is None else (numero, True)
    if isinstance(valor, bool) or valor is None:
        return 0.0, False
    numero = a_numero(valor, defecto=math.nan)
    if math.isnan(numero):
        return 0.0, False
    return numero, True


# ==========================================================
# Extractos bancarios -> movimientos
# ==========================================================
def movimientos_desde_extraccion(
    registros: Iterable[Mapping[str, Any]] | None,
    archivo_origen: str = "",
) -> list[Movimiento]:
    """
    Convierte los registros {date, description, amount} de un extracto en
    movimientos con una operacion por el total.

    Nunca lanza: los campos faltantes o mal formados quedan en ''/0 y la
    operacion recibe un comentario informativo para el auditor.
    """
    out: list[Movimiento] = []
    for registro in registros or []:
        if not isinstance(registro, Mapping):
            log.info("Registro descartado en %s: %r", archivo_origen, registro)
            continue

        crudo_fecha = _campo(registro, "date", "fecha")
        fecha = normalizar_fecha(crudo_fecha)
        descripcion = _normalizar_descripcion(_campo(registro, "description", "descripcion"))
        importe, importe_ok = _importe(_campo(registro, "amount", "importe"))

        completo = bool(fecha) and bool(descripcion) and importe_ok
        revision = DatosRevision()
        if not completo:
            revision.comentarios = COMENTARIO_REGISTRO_INCOMPLETO
            log.info("Registro incompleto en %s: %r", archivo_origen, dict(registro))

        out.append(Movimiento(
            fecha=fecha,
            descripcion=descripcion,
            importe=importe,
            archivo_origen=archivo_origen,
            operaciones=[Operacion(importe=importe, revision=revision)],
        ))
    return out


def movimiento_sin_transacciones(archivo_origen: str) -> Movimiento:
    """Marcador visible para un extracto del que no se extrajo nada."""
    revision = DatosRevision(
        documental=RevisionEje(estado="N/A"),
        banrep=RevisionEje(estado="N/A"),
        dian=RevisionEje(estado="N/A"),
        comentarios=COMENTARIO_SIN_TRANSACCIONES,
    )
    return Movimiento(
        fecha="",
        descripcion=f"INFO: No se detectaron movimientos en {archivo_origen}",
        importe=0.0,
        archivo_origen=archivo_origen,
        operaciones=[Operacion(importe=0.0, incluir_en_revision=False, revision=revision)],
    )


def procesar_extractos(extractos: Mapping[str, Iterable[Mapping[str, Any]] | None]) -> list[Movimiento]:
    """{nombre_archivo: registros} -> movimientos, en el orden de los archivos."""
    out: list[Movimiento] = []
    for nombre, registros in extractos.items():
        movimientos = movimientos_desde_extraccion(registros, archivo_origen=nombre)
        if not movimientos:
            log.info("Extracto sin transacciones: %s", nombre)
            movimientos = [movimiento_sin_transacciones(nombre)]
        out.extend(movimientos)
    return out


# ==========================================================
# Declaraciones de cambio
# ==========================================================
def declaraciones_desde_extraccion(
    registros: Iterable[Mapping[str, Any]] | None,
    documentos: Mapping[str, str],
) -> list[DeclaracionProcesada]:
    """
    Une los registros {id, date, amount, number, numeral} con los documentos
    {id: nombre_archivo}. Un documento sin registro queda con metadata vacia.
    """
    por_id: dict[str, Mapping[str, Any]] = {}
    for registro in registros or []:
        if isinstance(registro, Mapping) and _campo(registro, "id") is not None:
            por_id.setdefault(str(registro["id"]), registro)

    out: list[DeclaracionProcesada] = []
    for doc_id, nombre_archivo in documentos.items():
        registro = por_id.get(str(doc_id))
        if registro is None:
            log.info("Declaracion sin datos extraidos: %s", nombre_archivo)
            out.append(DeclaracionProcesada(id=str(doc_id), nombre_archivo=nombre_archivo))
            continue
        importe, _ = _importe(_campo(registro, "amount", "importe"))
        out.append(DeclaracionProcesada(
            id=str(doc_id),
            nombre_archivo=nombre_archivo,
            fecha=normalizar_fecha(_campo(registro, "date", "fecha")),
            importe=importe,
            numero=_normalizar_descripcion(_campo(registro, "number", "numero")),
            numeral=_normalizar_descripcion(_campo(registro, "numeral")),
            muestra_contenido=_normalizar_descripcion(_campo(registro, "content", "muestra_contenido")),
        ))
    return out


# ==========================================================
# Archivos de registros (XML por lineas)
# ==========================================================
def archivo_desde_texto(nombre: str, texto: str, archivo_id: str | None = None) -> ArchivoRegistro:
    """Un archivo cargado a mano: una linea de registro por linea no vacia."""
    archivo_id = archivo_id or nuevo_id("xml")
    lineas = [
        LineaRegistro(id=f"{archivo_id}-l{i}", contenido=contenido)
        for i, contenido in enumerate(l for l in (texto or "").splitlines() if l.strip())
    ]
    return ArchivoRegistro(id=archivo_id, nombre=nombre, lineas=lineas)


def archivo_desde_dict(data: Mapping[str, Any]) -> ArchivoRegistro:
    """Payload del cargador de archivos o del estado guardado; tolera campos faltantes."""
    archivo_id = _normalizar_descripcion(data.get("id")) or nuevo_id("xml")
    lineas = []
    for i, l in enumerate(data.get("lineas") or []):
        if not isinstance(l, Mapping):
            continue
        estado = l.get("estado")
        lineas.append(LineaRegistro(
            id=_normalizar_descripcion(l.get("id")) or f"{archivo_id}-l{i}",
            contenido=_normalizar_descripcion(l.get("contenido")),
            estado=estado if estado in ("pending", "reviewed") else "pending",
            comentario=_normalizar_descripcion(l.get("comentario")),
        ))
    return ArchivoRegistro(id=archivo_id, nombre=_normalizar_descripcion(data.get("nombre")), lineas=lineas)
