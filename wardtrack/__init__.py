"""Ward Tracker: hospital ward patient tracking.

Patients are admitted under a specialty, accumulate medical notes and are
eventually discharged. Records live in a relational primary store and are
mirrored into a secondary document store.
"""

__version__ = "1.0.0"
