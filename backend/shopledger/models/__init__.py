from .tenancy import Location, UserLocation, PartnerShareConfig
from .auth import User, SessionToken
from .actions import ActionDefinition, LocationActionOverride
from .ledger import Movement
from .presets import Preset, PresetItem

__all__ = [
    'Location', 'UserLocation', 'PartnerShareConfig',
    'User', 'SessionToken',
    'ActionDefinition', 'LocationActionOverride',
    'Movement',
    'Preset', 'PresetItem',
]
