"""gamemachine

On-board controller for the airsoft game machine appliance.
"""

__version__ = "1.0.0"
