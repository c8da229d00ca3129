from app.clients import PokeAPIClient
from app.config import Settings, get_settings as load_settings
from app.services import PokemonService
from fastapi import Depends

_poke_client = None
_settings = None

def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings

def get_poke_client() -> PokeAPIClient:
    global _poke_client
    if _poke_client is None:
        _poke_client = PokeAPIClient()
    return _poke_client

def get_pokemon_service(
    poke_client: PokeAPIClient = Depends(get_poke_client),
    settings: Settings = Depends(get_settings),
) -> PokemonService:
    return PokemonService(poke_client=poke_client, settings=settings)

async def close_clients():
    """Closes the shared client if one was created (app shutdown)."""
    global _poke_client
    if _poke_client is not None:
        await _poke_client.close()
        _poke_client = None
