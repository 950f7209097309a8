"""PostgreSQL-backed enum types for the ORM models and API schemas.

The roast level is stored by *value* (``"Medium-Dark"``), which is also the
label the UI shows and the form the export file carries.
"""

from enum import StrEnum


class RoastLevelEnum(StrEnum):
    """Fixed set of roast degrees a profile can be tagged with."""

    light = "Light"
    medium_light = "Medium-Light"
    medium = "Medium"
    medium_dark = "Medium-Dark"
    dark = "Dark"
