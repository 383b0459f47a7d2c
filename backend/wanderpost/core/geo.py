"""
Distance and transport estimation between two journey stops.

Travel is approximated from straight-line distance: the great-circle distance is
stretched by a detour factor, classified into a transport mode, and turned into a
duration and a ticket price with per-mode affine formulas.
"""

import math
from collections import namedtuple
from enum import Enum

from geopy.distance import great_circle

Coord = namedtuple("Coord", ["latitude", "longitude"])

DETOUR_FACTOR = 1.3

AIRPLANE_THRESHOLD_KM = 700
TRAIN_THRESHOLD_KM = 300


class TransportMode(str, Enum):
    BUS = "bus"
    TRAIN = "train"
    AIRPLANE = "airplane"


def distance_km(a: Coord, b: Coord, detour_factor: float = DETOUR_FACTOR) -> float:
    """Great-circle distance between two coordinates, stretched to approximate routing"""
    straight = great_circle(
        (a.latitude, a.longitude),
        (b.latitude, b.longitude),
    ).km
    return straight * detour_factor


def classify_transport(distance: float) -> TransportMode:
    # boundary values resolve to the lower tier
    if distance > AIRPLANE_THRESHOLD_KM:
        return TransportMode.AIRPLANE
    if distance > TRAIN_THRESHOLD_KM:
        return TransportMode.TRAIN
    return TransportMode.BUS


def estimate_duration_minutes(distance: float, mode: TransportMode) -> int:
    """Door-to-door minutes; flights carry one hour of airport overhead"""
    mode = TransportMode(mode)
    if mode is TransportMode.AIRPLANE:
        return 60 + math.ceil(distance / 700 * 60)
    if mode is TransportMode.TRAIN:
        return math.ceil(distance / 60 * 60)
    return math.ceil(distance / 50 * 60)


def estimate_price(distance: float, mode: TransportMode) -> int:
    """Base fare plus a per-km rate, rounded to whole currency units"""
    mode = TransportMode(mode)
    if mode is TransportMode.AIRPLANE:
        return round(50 + distance * 0.15)
    if mode is TransportMode.TRAIN:
        return round(10 + distance * 0.1)
    return round(5 + distance * 0.08)
