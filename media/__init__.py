"""media/ -- External media hosting for avatars and cover images.

Layer rule: media/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/ or auth/.
"""
