from __future__ import annotations
from typing import Iterable, Optional

from infra.logger import get_logger
from logic.duplicados import (
    EstadisticasXml,
    ResumenDuplicados,
    ResumenSeleccion,
    agrupar_duplicados,
    estadisticas_xml,
    resumen_duplicados,
    resumen_seleccion,
)
from logic.modelos import ArchivoRegistro, GrupoIdentificadorDuplicado, LineaRegistro


log = get_logger("catalogo")

Clave = tuple[str, str]   # (archivo_id, linea_id)


class CatalogoRegistros:
    """Archivos XML cargados, con un arena de lineas por (archivo_id, linea_id).

    Los grupos de duplicados se calculan bajo demanda y quedan en cache hasta el
    siguiente cambio del catalogo (alta/baja de archivos o edicion de contenido).
    Las lineas deben modificarse a traves de este objeto; una edicion directa
    sobre `ArchivoRegistro.lineas` no invalida la cache.
    """

    def __init__(self, archivos: Iterable[ArchivoRegistro] = ()):
        self._archivos: dict[str, ArchivoRegistro] = {}
        self._arena: dict[Clave, LineaRegistro] = {}
        self._version = 0
        self._grupos: tuple[GrupoIdentificadorDuplicado, ...] = ()
        self._version_grupos = -1
        self._indice_grupos: dict[Clave, tuple[GrupoIdentificadorDuplicado, int]] = {}
        for archivo in archivos:
            self.agregar_archivo(archivo)

    # ---------------- consulta ----------------
    @property
    def version(self) -> int:
        return self._version

    @property
    def archivos(self) -> list[ArchivoRegistro]:
        return list(self._archivos.values())

    def archivo(self, archivo_id: str) -> Optional[ArchivoRegistro]:
        return self._archivos.get(archivo_id)

    def ubicar(self, archivo_id: str, linea_id: str) -> Optional[LineaRegistro]:
        return self._arena.get((archivo_id, linea_id))

    def __len__(self) -> int:
        return len(self._archivos)

    # ---------------- mutacion ----------------
    def _invalidar(self) -> None:
        self._version += 1

    def agregar_archivo(self, archivo: ArchivoRegistro) -> None:
        """Alta de archivo; un id repetido reemplaza al anterior."""
        if archivo.id in self._archivos:
            self._quitar_del_arena(archivo.id)
        self._archivos[archivo.id] = archivo
        for linea in archivo.lineas:
            self._arena[(archivo.id, linea.id)] = linea
        self._invalidar()
        log.info("Archivo XML cargado: %s (%d lineas)", archivo.nombre, len(archivo.lineas))

    def eliminar_archivo(self, archivo_id: str) -> bool:
        if archivo_id not in self._archivos:
            return False
        self._quitar_del_arena(archivo_id)
        del self._archivos[archivo_id]
        self._invalidar()
        return True

    def _quitar_del_arena(self, archivo_id: str) -> None:
        for clave in [k for k in self._arena if k[0] == archivo_id]:
            del self._arena[clave]

    def actualizar_contenido(self, archivo_id: str, linea_id: str, contenido: str) -> bool:
        linea = self.ubicar(archivo_id, linea_id)
        if linea is None:
            log.warning("Linea no encontrada: %s/%s", archivo_id, linea_id)
            return False
        if linea.contenido == contenido:
            return True
        linea.contenido = contenido
        self._invalidar()
        return True

    def alternar_estado(self, archivo_id: str, linea_id: str) -> Optional[str]:
        """pending <-> reviewed. El estado no altera identificadores: no invalida."""
        linea = self.ubicar(archivo_id, linea_id)
        if linea is None:
            return None
        linea.estado = "pending" if linea.estado == "reviewed" else "reviewed"
        return linea.estado

    def fijar_comentario(self, archivo_id: str, linea_id: str, comentario: str) -> bool:
        linea = self.ubicar(archivo_id, linea_id)
        if linea is None:
            return False
        linea.comentario = comentario or ""
        return True

    # ---------------- derivados ----------------
    def grupos_duplicados(self) -> tuple[GrupoIdentificadorDuplicado, ...]:
        if self._version_grupos != self._version:
            self._grupos = agrupar_duplicados(self._archivos.values())
            self._indice_grupos = {
                (u.archivo_id, u.linea_id): (g, i)
                for g in self._grupos
                for i, u in enumerate(g.ubicaciones)
            }
            self._version_grupos = self._version
            log.debug("Duplicados recalculados: %d grupos", len(self._grupos))
        return self._grupos

    def info_duplicado(self, archivo_id: str, linea_id: str) -> Optional[tuple[GrupoIdentificadorDuplicado, int]]:
        """(grupo, posicion) de la linea dentro de su grupo, para navegar al siguiente."""
        self.grupos_duplicados()
        return self._indice_grupos.get((archivo_id, linea_id))

    def resumen_duplicados(self) -> ResumenDuplicados:
        return resumen_duplicados(self.grupos_duplicados())

    def resumen_seleccion(self, claves: Iterable[Clave]) -> ResumenSeleccion:
        lineas = [l for l in (self.ubicar(a, b) for a, b in claves) if l is not None]
        return resumen_seleccion(lineas)

    def estadisticas(self) -> EstadisticasXml:
        return estadisticas_xml(self._archivos.values())
