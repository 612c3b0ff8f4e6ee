"""
Value types shared by the physics core and its collaborators.

Everything here is immutable. The mutable particle data lives as arrays
inside the simulation state (see physics.py); ParticleView is a read-only
copy of one row of that data.
"""
from dataclasses import dataclass
from enum import Enum

from . import constants as c


class UnknownDemographicError(KeyError):
    """Raised when a particle references a demographic the model does not know."""


class Demographic(Enum):
    STANDARD = "STANDARD"
    YOUTH = "YOUTH"
    ADULT = "ADULT"
    ELDERLY = "ELDERLY"


@dataclass(frozen=True)
class DemographicProfile:
    """Physical and behavioural constants of one population subgroup."""
    name: str
    r_min: float
    r_max: float
    vd_max: float
    stress_threshold: float
    crush_threshold: int
    proportion: float
    color: str


@dataclass(frozen=True)
class Target:
    x: float
    y: float


@dataclass(frozen=True)
class Boundary:
    x1: float
    y1: float
    x2: float
    y2: float


@dataclass(frozen=True)
class DeathMarker:
    x: float
    y: float
    demographic: Demographic


@dataclass(frozen=True)
class ParticleView:
    """Snapshot of a single active particle."""
    x: float
    y: float
    r: float
    vd: tuple
    vd_magnitude: float
    ve: tuple
    ve_magnitude: float
    in_contact: bool
    contacts: int
    stress: float
    demographic: Demographic
    target_index: int


# --- REGISTRY BUILDERS ---

def default_registry():
    """
    Returns the built-in Youth/Adult/Elderly registry.
    """
    return {
        Demographic[key]: DemographicProfile(**values)
        for key, values in c.DEMOGRAPHICS.items()
    }


def standard_registry(params):
    """
    Single-population registry built from the model-level parameters.
    """
    return {
        Demographic.STANDARD: DemographicProfile(
            name="Standard",
            r_min=params["r_min"],
            r_max=params["r_max"],
            vd_max=params["vd_max"],
            stress_threshold=params["stress_threshold"],
            crush_threshold=params["crush_threshold"],
            proportion=1.0,
            color=c.STANDARD_COLOR,
        )
    }


def resolve_demographic(registry, key):
    """
    Maps a Demographic member or its name onto a registry key.
    Raises UnknownDemographicError if the registry has no such entry.
    """
    if isinstance(key, str):
        try:
            key = Demographic[key.upper()]
        except KeyError:
            raise UnknownDemographicError(key) from None

    if key not in registry:
        raise UnknownDemographicError(key)

    return key
