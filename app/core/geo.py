"""
Checklist Server - Geo utilities
Cálculo de área de talhões (mapas de propriedade)
"""
import math
from typing import Iterable, List, Union

EARTH_RADIUS_M = 6378137.0
SQUARE_METERS_PER_HECTARE = 10000.0

GeoInput = Union[List[dict], dict]


def _points_from_ring(ring: Iterable) -> List[dict]:
    # GeoJSON usa [lng, lat]
    return [{"lat": coord[1], "lng": coord[0]} for coord in ring]


def _ring_area_m2(points: List[dict]) -> float:
    """
    Shoelace adaptado para coordenadas geográficas (aproximação esférica,
    adequada para áreas pequenas como talhões).
    """
    if len(points) < 3:
        return 0.0

    total = 0.0
    count = len(points)
    for i in range(count):
        p1 = points[i]
        p2 = points[(i + 1) % count]

        lat1 = math.radians(float(p1["lat"]))
        lon1 = math.radians(float(p1["lng"]))
        lat2 = math.radians(float(p2["lat"]))
        lon2 = math.radians(float(p2["lng"]))

        total += (lon2 - lon1) * (2 + math.sin(lat1) + math.sin(lat2))

    return abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2)


def calculate_area_in_hectares(geometry: GeoInput) -> float:
    """
    Calcula a área de um polígono em hectares.

    Aceita uma lista de pontos ``{"lat": ..., "lng": ...}`` ou uma geometria
    GeoJSON ``Polygon``/``MultiPolygon`` (apenas o anel externo de cada polígono
    é considerado). Retorna 0 para entradas com menos de 3 pontos ou formato
    desconhecido.
    """
    if isinstance(geometry, dict):
        geo_type = geometry.get("type")
        coordinates = geometry.get("coordinates") or []
        if geo_type == "Polygon":
            rings = [coordinates[0]] if coordinates else []
        elif geo_type == "MultiPolygon":
            rings = [polygon[0] for polygon in coordinates if polygon]
        else:
            return 0.0
        area = sum(_ring_area_m2(_points_from_ring(ring)) for ring in rings)
    elif isinstance(geometry, list):
        area = _ring_area_m2(geometry)
    else:
        return 0.0

    return area / SQUARE_METERS_PER_HECTARE


def format_hectares(hectares: float) -> str:
    """Formata a área como exibida no mapa ("15.50 ha")"""
    return f"{hectares:.2f} ha"


def fill_field_areas(fields: List[dict]) -> List[dict]:
    """
    Preenche ``area`` dos talhões que têm pontos mas não têm área informada.
    Não altera a lista original.
    """
    result = []
    for field in fields or []:
        field = dict(field)
        points = field.get("points") or []
        if not field.get("area") and len(points) >= 3:
            field["area"] = format_hectares(calculate_area_in_hectares(points))
        result.append(field)
    return result
