"""
Caseflow - legal case workflow service

Backend for an immigration consultancy's legal matters:
- Drives Overstay Appeal, Prohibited Persons, High Court and section 8 appeal cases through their steps
- Tracks High Court notification and settlement deadlines
- Spawns appeal cases from lost Prohibited Persons cases
"""

__version__ = "0.1.0"
