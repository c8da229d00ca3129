import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
from app.services.pokemon_service import PokemonService
from app.dependencies import get_pokemon_service, get_settings, close_clients
from app.models import ErrorResponse, PokemonDetailResponse, PokemonListResponse, TypeListResponse
from app.query import parse_list_query, parse_pokemon_id

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# The types offered by the catalog filter
POKEMON_TYPES = (
    "bug", "dark", "dragon", "electric", "fairy", "fighting",
    "fire", "flying", "ghost", "grass", "ground", "ice",
    "normal", "poison", "psychic", "rock", "steel", "water",
)

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_clients()


app = FastAPI(
    title="Pokedex Catalog API",
    description="Listing and detail aggregation over PokeAPI for the Pokedex catalog viewer.",
    lifespan=lifespan,
)


# Every failure leaves the API as {"error": message}
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    # Malformed upstream data and the like. The server logs the traceback once this
    # handler returns, so only the generic message is produced here.
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# Endpoint 1: Paginated, filterable listing
@app.get(
    "/api/pokemon",
    response_model=PokemonListResponse,
    responses=ERROR_RESPONSES,
    summary="Returns one page of Pokemon, filtered by search text and types",
)
async def list_pokemon(
    page: str | None = None,
    limit: str | None = None,
    search: str | None = None,
    types: str | None = None,
    sort: str | None = None,
    service: PokemonService = Depends(get_pokemon_service),
):
    """Query parameters are never rejected; malformed values fall back to their defaults."""
    query = parse_list_query(page=page, limit=limit, search=search, types=types, sort=sort)
    # Upstream failures are raised by the PokeAPIClient as APIClientError (500)
    return await service.list_pokemon(query)


# Endpoint 2: Aggregated detail page
@app.get(
    "/api/pokemon/{pokemon_id}",
    response_model=PokemonDetailResponse,
    responses=ERROR_RESPONSES,
    summary="Returns stats, description, evolution chain and moves of one Pokemon",
)
async def get_pokemon_detail(
    pokemon_id: str,
    service: PokemonService = Depends(get_pokemon_service),
):
    # Validation happens before any call to PokeAPI
    return await service.get_pokemon_detail(parse_pokemon_id(pokemon_id))


@app.get("/api/types", response_model=TypeListResponse, summary="Lists the Pokemon types available as filters")
async def list_types():
    return TypeListResponse(types=list(POKEMON_TYPES))


@app.get("/health")
async def health():
    return {"status": "healthy"}
