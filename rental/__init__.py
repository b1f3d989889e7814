"""rental/ -- Car inventory and booking domain.

Layer rule: rental/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or auth/.
"""
