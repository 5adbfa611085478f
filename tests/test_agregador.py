import pandas as pd

from logic.agregador import calcular_estadisticas, hojas_reporte, operaciones_df
from logic.clasificacion import EstadoCumplimiento as E
from logic.ingesta import movimiento_sin_transacciones
from logic.modelos import Movimiento, Operacion, RevisionDeclaracion


def _op(documental="", banrep="", dian="", comentarios="", importe=100.0):
    op = Operacion(importe=importe)
    op.revision.documental.estado = documental
    op.revision.banrep.estado = banrep
    op.revision.dian.estado = dian
    op.revision.comentarios = comentarios
    return op


def _movimientos():
    op1 = _op("O.K.", "TRANSMISIÓN EXTEMPORÁNEA", "SIN LEGALIZAR", importe=600.0)
    op1.revision.banrep.estado_correccion = "SIN CORREGIR"
    op2 = _op("FALTA SOPORTE DOCUMENTAL", "O.K.", "", comentarios="Revisar soporte con tesorería", importe=400.0)
    op3 = _op("O.K.", "O.K.", "LEGALIZADO OPORTUNAMENTE", importe=-50.0)
    return [
        Movimiento("2024-03-01", "Giro A", 1000.0, operaciones=[op1, op2]),
        Movimiento("2024-03-05", "Reintegro B", -50.0, operaciones=[op3]),
        movimiento_sin_transacciones("extracto_abril.pdf"),
    ]


def test_totales():
    s = calcular_estadisticas(_movimientos())
    assert s.total_movimientos == 3
    assert s.total_operaciones == 4
    assert s.operaciones_en_revision == 3
    assert s.total_usd == 1050.0


def test_conteos_por_eje():
    s = calcular_estadisticas(_movimientos())
    assert s.conteo("banrep", E.EXTEMPORANEO) == 1
    assert s.conteo("banrep", E.CONFORME) == 2
    assert s.conteo("dian", E.SIN_PRESENTAR) == 1
    assert s.conteo("dian", E.SIN_ESTADO) == 1
    assert s.conteo("documental", E.PENDIENTE) == 1
    # el marcador informativo cuenta como N/A
    assert s.conteo("dian", E.NO_APLICA) == 1
    assert s.correcciones_pendientes == {"documental": 0, "banrep": 1, "dian": 0}
    assert s.porcentaje("banrep", E.CONFORME) == 50


def test_hallazgos_documental_y_banrep():
    """Un hallazgo por eje documental/BANREP no vacio y no conforme; DIAN no suma."""
    s = calcular_estadisticas(_movimientos())
    assert s.total_hallazgos == 2


def test_tabla_de_destacados():
    s = calcular_estadisticas(_movimientos())
    assert [(f.descripcion, f.severidad) for f in s.hallazgos] == [
        ("Giro A", "Crítico"),
        ("Giro A", "Alerta"),
        ("INFO: No se detectaron movimientos en extracto_abril.pdf", "Alerta"),
    ]
    assert s.hallazgos[1].comentarios == "Revisar soporte con tesorería"


def test_operacion_excluida_sigue_contando():
    """Sacar una operacion de la revision no borra su hallazgo del reporte."""
    op = _op(banrep="SIN TRANSMITIR")
    op.incluir_en_revision = False
    s = calcular_estadisticas([Movimiento("2024-03-01", "Giro", 100.0, operaciones=[op])])
    assert s.operaciones_en_revision == 0
    assert s.total_hallazgos == 1
    assert s.conteo("banrep", E.SIN_PRESENTAR) == 1
    assert [f.severidad for f in s.hallazgos] == ["Crítico"]


def test_tabla_acotada_en_orden_de_recorrido():
    movs = [
        Movimiento(f"2024-01-{d:02d}", f"Mov {d}", 10.0, operaciones=[_op(banrep="SIN TRANSMITIR")])
        for d in range(1, 16)
    ]
    s = calcular_estadisticas(movs)
    assert len(s.hallazgos) == 10
    assert [f.descripcion for f in s.hallazgos] == [f"Mov {d}" for d in range(1, 11)]
    assert s.total_hallazgos == 15


def test_declaraciones():
    revisiones = [
        RevisionDeclaracion("p1", "d1.pdf", estado="approved"),
        RevisionDeclaracion("p2", "d2.pdf", estado="correction_needed"),
        RevisionDeclaracion("p3", "d3.pdf"),
    ]
    s = calcular_estadisticas([], revisiones)
    assert s.declaraciones_revisadas == 3
    assert s.declaraciones_por_corregir == 1
    assert s.porcentaje("dian", E.CONFORME) == 0


def test_idempotente_y_sin_efectos():
    movs = _movimientos()
    antes = [m.a_dict() for m in movs]
    assert calcular_estadisticas(movs) == calcular_estadisticas(movs)
    assert [m.a_dict() for m in movs] == antes


def test_operaciones_df():
    df = operaciones_df(_movimientos())
    assert len(df) == 4
    assert pd.api.types.is_datetime64_any_dtype(df["fecha"])
    assert df.loc[0, "banrep_correccion"] == "SIN CORREGIR"
    assert pd.isna(df.loc[3, "fecha"])


def test_hojas_reporte():
    hojas = hojas_reporte(_movimientos(), [RevisionDeclaracion("p1", "d1.pdf")])
    assert list(hojas) == ["Resumen", "Operaciones", "Ejes", "Hallazgos", "Declaraciones"]
    assert len(hojas["Hallazgos"]) == 3
    assert len(hojas["Declaraciones"]) == 1
    assert set(hojas["Ejes"]["estado"]) == {e.value for e in E}
