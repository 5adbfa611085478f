from __future__ import annotations
import io
import pandas as pd


def libro_excel_bytes(
    hojas: dict[str, pd.DataFrame],
    formato_columnas_fecha: dict[str, str] | None = None
) -> bytes:
    """
    Exporta varias hojas a un solo libro Excel conservando los tipos fecha (no texto).
    `formato_columnas_fecha` = {nombre_columna: "DD/MM/YYYY"} se aplica en cada hoja
    que tenga esa columna.
    """
    buff = io.BytesIO()
    with pd.ExcelWriter(buff, engine="openpyxl") as writer:
        for nombre, df in hojas.items():
            hoja = nombre[:31]   # limite de Excel
            df.to_excel(writer, index=False, sheet_name=hoja)
            if not formato_columnas_fecha:
                continue
            ws = writer.sheets[hoja]
            headers = [c.value for c in ws[1]]
            for col_name, fmt in formato_columnas_fecha.items():
                if col_name not in headers:
                    continue
                col_idx = headers.index(col_name) + 1
                for (cell,) in ws.iter_rows(min_row=2, min_col=col_idx, max_col=col_idx):
                    cell.number_format = fmt
    return buff.getvalue()
