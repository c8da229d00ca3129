"""Aggregation services behind the public API."""
from .pokemon_service import PokemonService

__all__ = [
    'PokemonService'
]
