import pytest

from logic.clasificacion import (
    OPCIONES_POR_EJE,
    EstadoCumplimiento as E,
    clasificar_estado,
    es_hallazgo,
    normalizar_etiqueta,
)


@pytest.mark.parametrize("texto, esperado", [
    ("O.K.", E.CONFORME),
    ("o.k.", E.CONFORME),
    ("LEGALIZADO OPORTUNAMENTE", E.CONFORME),
    ("TRANSMISIÓN EXTEMPORÁNEA", E.EXTEMPORANEO),
    ("LEGALIZADO EXTEMPORANEO", E.EXTEMPORANEO),
    ("SIN LEGALIZAR", E.SIN_PRESENTAR),
    ("SIN TRANSMITIR", E.SIN_PRESENTAR),
    ("LEGALIZACIÓN PARCIAL", E.PARCIAL),
    ("ERROR EN VALOR TRANSMITIDO", E.ERROR),
    ("MAL NUMERAL CAMBIARIO", E.ERROR),
    ("FALTA SOPORTE DOCUMENTAL", E.PENDIENTE),
    ("", E.SIN_ESTADO),
    ("   ", E.SIN_ESTADO),
    (None, E.SIN_ESTADO),
    ("N/A", E.NO_APLICA),
])
def test_tabla_de_etiquetas(texto, esperado):
    assert clasificar_estado(texto) == esperado


def test_mal_al_inicio_de_palabra():
    """'mala' y 'mal' son error; 'normal' no."""
    assert clasificar_estado("MALA LIQUIDACIÓN DEL NUMERAL") == E.ERROR
    assert clasificar_estado("Numeral mal diligenciado") == E.ERROR
    assert clasificar_estado("Trámite normal") == E.PENDIENTE


def test_normalizar_etiqueta():
    assert normalizar_etiqueta("  Transmisión   EXTEMPORÁNEA ") == "transmision extemporanea"


def test_hallazgos():
    assert not es_hallazgo(E.CONFORME)
    assert not es_hallazgo(E.SIN_ESTADO)
    assert not es_hallazgo(E.NO_APLICA)
    assert es_hallazgo(E.PENDIENTE)
    assert es_hallazgo(E.EXTEMPORANEO)


def test_opciones_sugeridas_clasifican():
    """Toda etiqueta sugerida en la UI cae en un estado distinto de vacio."""
    for opciones in OPCIONES_POR_EJE.values():
        for etiqueta in opciones:
            assert clasificar_estado(etiqueta) != E.SIN_ESTADO
