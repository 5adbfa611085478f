import logging

import pytest

from logic.modelos import ArchivoRegistro, DeclaracionProcesada, LineaRegistro, Movimiento
from logic.sesion import (
    SesionAuditoria,
    anios_disponibles,
    diferencia_division,
    division_valida,
    filtrar_movimientos,
)


def _sesion_simple(importe=1000.0):
    m = Movimiento("2024-03-01", "Giro exterior", importe)
    return SesionAuditoria(movimientos=[m]), m


def test_no_se_elimina_la_unica_operacion(caplog):
    s, m = _sesion_simple()
    with caplog.at_level(logging.WARNING, logger="auditoria"):
        res = s.eliminar_division(m.id, m.operaciones[0].id)
    assert res.ok is False
    assert res.mensaje
    assert len(s.movimiento(m.id).operaciones) == 1
    assert "unica operacion" in caplog.text


def test_division_cuadra():
    """1000 dividido en 400 + 600 -> diferencia 0."""
    s, m = _sesion_simple()
    op1 = m.operaciones[0]
    op2 = s.agregar_division(m.id)
    s.fijar_importe_operacion(m.id, op1.id, 400)
    s.fijar_importe_operacion(m.id, op2.id, 600)
    assert diferencia_division(m) == 0
    assert division_valida(m)


def test_division_descuadrada_es_informativa():
    """1000 en 400 + 550 -> diferencia 50; la division igual se guarda."""
    s, m = _sesion_simple()
    op1 = m.operaciones[0]
    op2 = s.agregar_division(m.id)
    s.fijar_importe_operacion(m.id, op1.id, "400")
    s.fijar_importe_operacion(m.id, op2.id, "550")
    assert diferencia_division(m) == 50
    assert not division_valida(m)
    assert len(m.operaciones) == 2


def test_agregar_division_nace_vacia():
    s, m = _sesion_simple()
    op = s.agregar_division(m.id)
    assert op.importe == 0.0
    assert op.incluir_en_revision is True
    assert op.revision.documental.estado == ""
    assert s.agregar_division("mov-inexistente") is None


def test_importe_no_numerico_queda_en_cero():
    s, m = _sesion_simple()
    op = m.operaciones[0]
    assert s.fijar_importe_operacion(m.id, op.id, "abc")
    assert op.importe == 0.0
    s.fijar_importe_operacion(m.id, op.id, float("nan"))
    assert op.importe == 0.0
    s.fijar_importe_operacion(m.id, op.id, "abc7")
    assert op.importe == 0.0


def test_importe_en_notacion_cientifica():
    s, m = _sesion_simple()
    op = m.operaciones[0]
    s.fijar_importe_operacion(m.id, op.id, "1e5")
    assert op.importe == 100000.0


def test_ejes_independientes():
    s, m = _sesion_simple()
    op = m.operaciones[0]
    s.actualizar_revision_eje(m.id, op.id, "documental", "estado", "O.K.")
    s.actualizar_revision_eje(m.id, op.id, "dian", "estado", "SIN LEGALIZAR")

    s.actualizar_revision_eje(m.id, op.id, "banrep", "estado", "SIN TRANSMITIR")
    s.actualizar_revision_eje(m.id, op.id, "banrep", "estado_correccion", "SIN CORREGIR")

    assert op.revision.documental.estado == "O.K."
    assert op.revision.dian.estado == "SIN LEGALIZAR"
    assert op.revision.dian.estado_correccion is None
    assert op.revision.banrep.estado == "SIN TRANSMITIR"
    assert op.revision.banrep.estado_correccion == "SIN CORREGIR"


def test_revision_eje_valores_invalidos():
    s, m = _sesion_simple()
    op = m.operaciones[0]
    with pytest.raises(ValueError):
        s.actualizar_revision_eje(m.id, op.id, "sunat", "estado", "O.K.")
    with pytest.raises(ValueError):
        s.actualizar_revision_eje(m.id, op.id, "dian", "color", "rojo")
    with pytest.raises(ValueError):
        s.actualizar_revision_eje(m.id, op.id, "dian", "estado_correccion", "QUIZAS")
    assert not s.puede_deshacer


def test_correccion_vacia_se_guarda_como_none():
    s, m = _sesion_simple()
    op = m.operaciones[0]
    s.actualizar_revision_eje(m.id, op.id, "dian", "fecha_correccion", "2024-04-10")
    s.actualizar_revision_eje(m.id, op.id, "dian", "fecha_correccion", "")
    assert op.revision.dian.fecha_correccion is None


def test_deshacer_y_rehacer():
    s, m = _sesion_simple()
    s.agregar_division(m.id)
    assert len(s.movimiento(m.id).operaciones) == 2

    assert s.deshacer()
    assert len(s.movimiento(m.id).operaciones) == 1
    assert s.puede_rehacer

    assert s.rehacer()
    assert len(s.movimiento(m.id).operaciones) == 2
    assert not s.rehacer()


def test_historial_acotado():
    m = Movimiento("2024-03-01", "Giro", 10.0)
    s = SesionAuditoria(movimientos=[m], limite_historial=3)
    for _ in range(5):
        s.actualizar_comentarios(m.id, m.operaciones[0].id, "x")
    pasos = 0
    while s.deshacer():
        pasos += 1
    assert pasos == 3


def test_eliminar_movimiento():
    s, m = _sesion_simple()
    assert s.eliminar_movimiento(m.id)
    assert s.movimiento(m.id) is None
    assert not s.eliminar_movimiento(m.id)


def test_vinculo_xml_manual_suprime_sugerencia():
    m = Movimiento("2024-03-01", "Giro", 250.75)
    archivo = ArchivoRegistro("f1", "ops.xml", [
        LineaRegistro("l1", '<op vusd="250.75" fecha="2024-03-01"/>'),
        LineaRegistro("l2", '<op vusd="10"/>'),
    ])
    s = SesionAuditoria(movimientos=[m], archivos=[archivo])
    assert s.coincidencia_xml(m.id).automatica.linea_id == "l1"

    enlace = s.vincular_xml(m.id, "f1", "l2")
    s.vincular_xml(m.id, "f1", "l2")
    assert len(m.xmls_vinculados) == 1
    assert enlace.etiqueta == "XML: ops.xml"
    assert s.linea_vinculada(enlace).id == "l2"

    vista = s.coincidencia_xml(m.id)
    assert vista.automatica is None
    assert vista.enlaces == (enlace,)

    assert s.desvincular_xml(m.id, "f1", "l2")
    assert s.coincidencia_xml(m.id).automatica is not None


def test_vincular_xml_inexistente():
    s, m = _sesion_simple()
    assert s.vincular_xml(m.id, "f9", "l9") is None
    assert m.xmls_vinculados == []


def test_guardar_declaraciones_avisa_conflicto_sin_bloquear():
    a = Movimiento("2024-03-01", "Giro A", 1000.0)
    b = Movimiento("2024-03-02", "Giro B", 1000.0)
    s = SesionAuditoria(
        movimientos=[a, b],
        declaraciones=[DeclaracionProcesada("d1", "d1.pdf", importe=1000.0)],
    )
    assert s.guardar_declaraciones(a.id, ["d1.pdf"]) == []
    conflictos = s.guardar_declaraciones(b.id, ["d1.pdf"])
    assert conflictos == [("d1.pdf", "Giro A")]
    assert [e.nombre_archivo_destino for e in b.declaraciones_vinculadas] == ["d1.pdf"]
    assert [e.nombre_archivo_destino for e in a.declaraciones_vinculadas] == ["d1.pdf"]


def test_agregar_y_quitar_vinculo_declaracion():
    s, m = _sesion_simple()
    s.agregar_vinculo_declaracion(m.id, "d1.pdf")
    s.agregar_vinculo_declaracion(m.id, "d2.pdf")
    s.agregar_vinculo_declaracion(m.id, "d1.pdf")
    assert [e.nombre_archivo_destino for e in m.declaraciones_vinculadas] == ["d1.pdf", "d2.pdf"]
    assert s.quitar_vinculo_declaracion(m.id, "d1.pdf")
    assert [e.nombre_archivo_destino for e in m.declaraciones_vinculadas] == ["d2.pdf"]
    assert not s.quitar_vinculo_declaracion(m.id, "d1.pdf")


def test_revision_declaracion():
    s = SesionAuditoria()
    r = s.actualizar_revision_declaracion("pdf1", "d1.pdf", estado="correction_needed", revisor="auditor1")
    assert r.estado == "correction_needed"
    assert r.revisado_por == "auditor1"
    assert r.revisado_en is not None

    s.actualizar_revision_declaracion("pdf1", "d1.pdf", comentarios_auditor="Numeral errado")
    assert len(s.revisiones) == 1
    assert s.revisiones[0].estado == "correction_needed"
    assert s.revisiones[0].comentarios_auditor == "Numeral errado"

    with pytest.raises(ValueError):
        s.actualizar_revision_declaracion("pdf1", "d1.pdf", estado="ok")


def test_filtrar_movimientos():
    movs = [
        Movimiento("2024-03-15", "Giro exterior", 250.75),
        Movimiento("2024-01-10", "Reintegro", 1000.0),
        Movimiento("2023-03-01", "Giro interno", 99.0),
    ]
    assert [m.fecha for m in filtrar_movimientos(movs)] == ["2023-03-01", "2024-01-10", "2024-03-15"]
    assert [m.fecha for m in filtrar_movimientos(movs, orden="desc")][0] == "2024-03-15"
    assert [m.descripcion for m in filtrar_movimientos(movs, anio="2024", mes="03")] == ["Giro exterior"]
    assert len(filtrar_movimientos(movs, descripcion="GIRO")) == 2
    assert [m.importe for m in filtrar_movimientos(movs, importe="250.7")] == [250.75]
    assert anios_disponibles(movs) == ["2023", "2024"]


def test_exportar_y_restaurar_estado():
    m = Movimiento("2024-03-01", "Giro", 1000.0)
    archivo = ArchivoRegistro("f1", "ops.xml", [LineaRegistro("l1", '<op ndec="N1"/>', estado="reviewed")])
    s = SesionAuditoria(
        movimientos=[m],
        archivos=[archivo],
        declaraciones=[DeclaracionProcesada("d1", "d1.pdf", importe=1000.0)],
    )
    s.agregar_division(m.id)
    s.actualizar_revision_declaracion("d1", "d1.pdf", estado="approved")

    r = SesionAuditoria.desde_estado(s.exportar_estado())
    assert len(r.movimiento(m.id).operaciones) == 2
    assert r.catalogo.ubicar("f1", "l1").estado == "reviewed"
    assert r.declaraciones_disponibles == ["d1.pdf"]
    assert r.revisiones[0].estado == "approved"
    assert not r.puede_deshacer


def test_estado_que_no_es_objeto_da_sesion_vacia(caplog):
    with caplog.at_level(logging.WARNING, logger="auditoria"):
        s = SesionAuditoria.desde_estado([{"movimientos": []}, 2])
    assert s.movimientos == []
    assert s.revisiones == []
    assert "se esperaba un objeto" in caplog.text
    assert SesionAuditoria.desde_estado(None).movimientos == []


def test_agregar_movimientos_y_excluir_de_revision():
    s = SesionAuditoria()
    m = Movimiento("2024-03-01", "Giro", 100.0)
    assert s.agregar_movimientos([m]) == 1
    assert s.agregar_movimientos([]) == 0
    op = m.operaciones[0]
    s.actualizar_revision_eje(m.id, op.id, "banrep", "estado", "SIN TRANSMITIR")
    assert s.estadisticas().total_hallazgos == 1

    assert s.fijar_incluir_en_revision(m.id, op.id, False)
    stats = s.estadisticas()
    assert stats.total_hallazgos == 1
    assert stats.operaciones_en_revision == 0
    assert stats.total_operaciones == 1


def test_resumen_de_lineas_seleccionadas():
    archivo = ArchivoRegistro("f1", "ops.xml", [
        LineaRegistro("l1", '<op vusd="10.5"/>'),
        LineaRegistro("l2", '<op vusd="4.5" vusdi="3"/>'),
    ])
    s = SesionAuditoria(archivos=[archivo])
    r = s.catalogo.resumen_seleccion([("f1", "l1"), ("f1", "l2"), ("f9", "l1")])
    assert (r.vusd.suma, r.vusd.cantidad) == (15.0, 2)
    assert (r.vusdi.suma, r.vusdi.cantidad) == (3.0, 1)


def test_movimientos_identicos_se_distinguen_por_id():
    """Misma fecha, descripcion e importe: ambos siguen visibles y editables."""
    a = Movimiento("2024-03-01", "Giro exterior", 500.0)
    b = Movimiento("2024-03-01", "Giro exterior", 500.0)
    s = SesionAuditoria(movimientos=[a, b])
    visibles = filtrar_movimientos(s.movimientos)
    assert len({m.id for m in visibles}) == 2
    s.fijar_importe_operacion(b.id, b.operaciones[0].id, 200)
    assert a.operaciones[0].importe == 500.0
    assert b.operaciones[0].importe == 200.0


def test_vinculador_de_sesion_informa_restante_y_conflicto():
    a = Movimiento("2024-03-01", "Giro A", 1000.0)
    b = Movimiento("2024-03-02", "Giro B", 1500.0)
    s = SesionAuditoria(
        movimientos=[a, b],
        declaraciones=[
            DeclaracionProcesada("d1", "d1.pdf", importe=1000.0),
            DeclaracionProcesada("d2", "d2.pdf", importe=500.0),
        ],
    )
    s.guardar_declaraciones(a.id, ["d1.pdf"])

    vinc = s.vinculador(b.id)
    res = vinc.resumen(["d1.pdf", "d2.pdf"])
    assert (res.objetivo, res.seleccionado, res.restante, res.estado) == (1500.0, 1500.0, 0.0, "exacto")
    conflictos = {c.nombre_archivo: c.conflicto for c in vinc.candidatos()}
    assert conflictos == {"d1.pdf": "Giro A", "d2.pdf": None}
    assert s.vinculador("mov-inexistente") is None
