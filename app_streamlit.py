import json

import pandas as pd
import streamlit as st

from infra.config import get_config
from infra.export import libro_excel_bytes
from infra.logger import get_logger
from logic.agregador import hallazgos_df, hojas_reporte, resumen_ejes_df
from logic.busqueda import busqueda_general
from logic.clasificacion import OPCIONES_POR_EJE
from logic.extraccion import formatear_moneda
from logic.ingesta import archivo_desde_texto
from logic.modelos import EJES
from logic.sesion import (
    SesionAuditoria,
    anios_disponibles,
    diferencia_division,
    division_valida,
    filtrar_movimientos,
)

log = get_logger("app")

# =========================
# Configuración inicial
# =========================
cfg = get_config()
st.set_page_config(page_title=cfg.app.title, layout=cfg.app.page_layout)
st.title(cfg.app.title)

with st.expander("ℹ️ Cómo usar la auditoría"):
    st.markdown("""
    ### 📂 Paso 1: Cargar sesión
    - Archivo **JSON** con el estado guardado (movimientos, declaraciones, revisiones).
    - Opcional: archivos **XML** de operaciones de cambio (una operación por línea).

    ### 🔎 Paso 2: Revisar movimientos
    - Cada movimiento muestra su operación en XML (vínculo manual o sugerencia automática).
    - Las divisiones deben sumar el total del movimiento; la diferencia se informa.

    ### 📊 Paso 3: Tablero y reporte
    - Conteos por eje (Documental, BANREP, DIAN), hallazgos y declaraciones a corregir.
    - Descarga del reporte en Excel y del estado en JSON.
    """)

# =========================
# Carga de sesión
# =========================
col_up1, col_up2 = st.columns(2)
with col_up1:
    archivo_sesion = st.file_uploader("Sesión (JSON)", type=["json"], key="archivo_sesion")
with col_up2:
    archivos_xml = st.file_uploader(
        "Registros XML", type=["xml", "txt"], accept_multiple_files=True, key="archivos_xml"
    )

if archivo_sesion is None:
    st.info("Cargue un archivo de sesión para comenzar.")
    st.stop()

clave = (archivo_sesion.name, archivo_sesion.size)
if st.session_state.get("clave_sesion") != clave:
    try:
        estado = json.loads(archivo_sesion.getvalue().decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        st.error(f"❌ No se pudo leer {archivo_sesion.name}: {e}")
        st.stop()
    st.session_state["sesion"] = SesionAuditoria.desde_estado(estado)
    st.session_state["clave_sesion"] = clave
    log.info("Sesion cargada: %s", archivo_sesion.name)

sesion: SesionAuditoria = st.session_state["sesion"]
for f in archivos_xml or []:
    if not any(a.nombre == f.name for a in sesion.catalogo.archivos):
        texto = f.getvalue().decode("utf-8", errors="replace")
        sesion.catalogo.agregar_archivo(archivo_desde_texto(f.name, texto))

# =========================
# Tablero
# =========================
stats = sesion.estadisticas()
st.subheader("Dashboard de resultados")
c1, c2, c3, c4, c5 = st.columns(5)
c1.metric("Total auditado (USD)", formatear_moneda(stats.total_usd))
c2.metric("Total operaciones", stats.total_operaciones)
c3.metric("Hallazgos detectados", stats.total_hallazgos)
c4.metric("Declaraciones rev.", stats.declaraciones_revisadas)
c5.metric("Correcciones req.", stats.declaraciones_por_corregir)

col_ejes, col_hall = st.columns(2)
with col_ejes:
    st.markdown("**Cumplimiento por eje**")
    st.dataframe(resumen_ejes_df(stats), use_container_width=True, hide_index=True)
with col_hall:
    st.markdown("**Hallazgos y comentarios relevantes**")
    tabla = hallazgos_df(stats)
    if tabla.empty:
        st.caption("No hay datos suficientes para mostrar hallazgos.")
    else:
        st.dataframe(tabla, use_container_width=True, hide_index=True)

# =========================
# Movimientos
# =========================
st.subheader("Movimientos")
colf1, colf2, colf3, colf4, colf5 = st.columns(5)
with colf1:
    anio = st.selectbox("Año", ["", *anios_disponibles(sesion.movimientos)])
with colf2:
    mes = st.selectbox("Mes", ["", *[f"{m:02d}" for m in range(1, 13)]])
with colf3:
    desc = st.text_input("Descripción", "")
with colf4:
    imp = st.text_input("Importe", "")
with colf5:
    orden = st.radio("Orden", ["asc", "desc"], horizontal=True)

visibles = filtrar_movimientos(sesion.movimientos, anio=anio, mes=mes, descripcion=desc, importe=imp, orden=orden)

rows = []
for m in visibles:
    vista = sesion.coincidencia_xml(m.id)
    if vista.enlaces:
        op_xml = ", ".join(e.etiqueta for e in vista.enlaces)
    elif vista.automatica is not None:
        marca = "✔" if vista.automatica.tipo_coincidencia == "perfect" else "≈"
        op_xml = f"{marca} {vista.automatica.nombre_archivo}"
    else:
        op_xml = "Sin coincidencia"
    rows.append({
        "fecha": m.fecha,
        "descripcion": m.descripcion,
        "importe": m.importe,
        "operaciones": len(m.operaciones),
        "diferencia": diferencia_division(m),
        "division_ok": division_valida(m),
        "op_en_xml": op_xml,
        "declaraciones": ", ".join(e.nombre_archivo_destino for e in m.declaraciones_vinculadas),
    })

tabla_mov = pd.DataFrame(rows)
if not tabla_mov.empty:
    tabla_mov["fecha"] = pd.to_datetime(tabla_mov["fecha"], errors="coerce")
st.dataframe(
    tabla_mov,
    use_container_width=True,
    hide_index=True,
    column_config={"fecha": st.column_config.DateColumn("fecha", format=cfg.app.fecha_vista_formato)},
)

# ---- Edición de una operación ----
if visibles:
    with st.expander("✏️ Revisar operación"):
        etiquetas = {m.id: f"{m.fecha} | {m.descripcion} | {formatear_moneda(m.importe)}" for m in visibles}
        mov_id = st.selectbox("Movimiento", list(etiquetas), format_func=lambda i: f"{etiquetas[i]} | {i}")
        mov = sesion.movimiento(mov_id)
        op = mov.operaciones[st.selectbox(
            "Operación", range(len(mov.operaciones)), format_func=lambda i: f"#{i + 1} ({mov.operaciones[i].importe:,.2f})"
        )]
        cols = st.columns(len(EJES))
        for col, eje in zip(cols, EJES):
            with col:
                actual = op.revision.eje(eje).estado
                opciones = ["", *OPCIONES_POR_EJE[eje]]
                if actual not in opciones:
                    opciones.append(actual)
                nuevo = st.selectbox(eje.upper(), opciones, index=opciones.index(actual), key=f"{op.id}_{eje}")
                if nuevo != actual:
                    sesion.actualizar_revision_eje(mov.id, op.id, eje, "estado", nuevo)
                rev = op.revision.eje(eje)
                if rev.aplica_correccion:
                    opciones_corr = ["", "CORREGIDO", "SIN CORREGIR"]
                    corr = st.selectbox(
                        "Corrección", opciones_corr,
                        index=opciones_corr.index(rev.estado_correccion or ""), key=f"{op.id}_{eje}_corr",
                    )
                    if corr != (rev.estado_correccion or ""):
                        sesion.actualizar_revision_eje(mov.id, op.id, eje, "estado_correccion", corr)

        st.markdown("**Importes de la división**")
        cols_imp = st.columns(len(mov.operaciones))
        for i, (col, o) in enumerate(zip(cols_imp, mov.operaciones)):
            nuevo_importe = col.number_input(
                f"Op. #{i + 1}", value=float(o.importe), step=0.01, format="%.2f", key=f"{o.id}_importe"
            )
            if round(nuevo_importe, 2) != round(o.importe, 2):
                sesion.fijar_importe_operacion(mov.id, o.id, nuevo_importe)
        st.caption(f"Diferencia con el movimiento: {formatear_moneda(diferencia_division(mov))}")

        st.markdown("**Declaraciones vinculadas**")
        vinc = sesion.vinculador(mov.id)
        candidatos = {c.nombre_archivo: c for c in vinc.candidatos()}
        opciones_decl = list(dict.fromkeys([*vinc.vinculadas, *candidatos]))

        def _etiqueta_declaracion(nombre):
            c = candidatos.get(nombre)
            if c is None:
                return nombre
            texto = f"{c.titulo} ({nombre})"
            return f"{texto} ⚠ ya vinculada a {c.conflicto}" if c.conflicto else texto

        seleccion = st.multiselect(
            "Declaraciones", opciones_decl, default=vinc.vinculadas,
            format_func=_etiqueta_declaracion, key=f"{mov.id}_declaraciones",
        )
        res_vinc = vinc.resumen(seleccion)
        st.caption(
            f"Objetivo {formatear_moneda(res_vinc.objetivo)} | Seleccionado {formatear_moneda(res_vinc.seleccionado)} | "
            f"Restante {formatear_moneda(res_vinc.restante)} ({res_vinc.estado})"
        )
        if st.button("Guardar declaraciones", key=f"{mov.id}_guardar_decl"):
            for nombre, otro in sesion.guardar_declaraciones(mov.id, seleccion):
                st.warning(f"{nombre} ya estaba vinculada a: {otro}")
            st.success("Declaraciones guardadas.")

        b1, b2, b3 = st.columns(3)
        if b1.button("Dividir"):
            sesion.agregar_division(mov.id)
            st.rerun()
        if b2.button("Eliminar división"):
            res = sesion.eliminar_division(mov.id, op.id)
            if not res.ok:
                st.warning(res.mensaje)
            else:
                st.rerun()
        if b3.button("Deshacer", disabled=not sesion.puede_deshacer):
            sesion.deshacer()
            st.rerun()

# =========================
# Duplicados y búsqueda
# =========================
st.subheader("Números de declaración duplicados")
resumen_dup = sesion.catalogo.resumen_duplicados()
st.caption(
    f"{resumen_dup.total_grupos} grupos, {resumen_dup.total_ubicaciones} ubicaciones | "
    f"vusd {formatear_moneda(resumen_dup.total_vusd)} | vusdi {formatear_moneda(resumen_dup.total_vusdi)}"
)
nombres = {a.id: a.nombre for a in sesion.catalogo.archivos}
st.dataframe(
    pd.DataFrame([
        {
            "identificador": g.identificador,
            "archivo": nombres.get(u.archivo_id, u.archivo_id),
            "linea": u.linea_id,
            "vusd": u.vusd,
            "vusdi": u.vusdi,
        }
        for g in sesion.catalogo.grupos_duplicados()
        for u in g.ubicaciones
    ]),
    use_container_width=True,
    hide_index=True,
)

termino = st.text_input("Búsqueda general (declaraciones y XML)", "")
for r in busqueda_general(termino, sesion.declaraciones, sesion.catalogo.archivos):
    st.markdown(f"**{r.titulo}** | {r.subtitulo}")

# =========================
# Exportar
# =========================
st.markdown("**Descargas**")
formato_columnas_fecha = {
    "fecha": "DD/MM/YYYY",
    **{f"{eje}_fecha_correccion": "DD/MM/YYYY" for eje in EJES},
}
xls_bytes = libro_excel_bytes(
    hojas_reporte(sesion.movimientos, sesion.revisiones),
    formato_columnas_fecha=formato_columnas_fecha,
)
st.download_button("Descargar reporte (xlsx)", data=xls_bytes, file_name="auditoria.xlsx")
st.download_button(
    "Descargar sesión (json)",
    data=json.dumps(sesion.exportar_estado(), ensure_ascii=False, indent=2),
    file_name="sesion_auditoria.json",
)
