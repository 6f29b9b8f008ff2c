"""
FinSight - Source Package

A personal budget analyst that estimates taxes, disposable income and
savings advice for a city, and compares the same budget across cities.

DESIGN PRINCIPLES:
1. AI estimates → System verifies the arithmetic it can check
2. Fail visibly, per city
3. One city's failure never touches another city
4. Every state transition is auditable
5. The reasoning provider is swappable
"""

__version__ = "1.0.0"
__author__ = "FinSight Team"
