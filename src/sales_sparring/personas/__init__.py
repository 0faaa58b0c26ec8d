"""
Personas module - buyer persona catalogue and behaviour profiles.
"""

from .profiles import PersonaBehaviourProfile, PersonaCard, persona_catalogue, resolve_profile

__all__ = ["PersonaBehaviourProfile", "PersonaCard", "persona_catalogue", "resolve_profile"]
