from pydantic import BaseModel, ConfigDict, Field


class _ResponseModel(BaseModel):
    # Snake_case in Python, camelCase aliases on the wire
    model_config = ConfigDict(populate_by_name=True, frozen=True)


# Stat blocks, always resolved by stat name (missing stats default to 0)
class CoreStats(_ResponseModel):
    hp: int = 0
    attack: int = 0
    defense: int = 0


class FullStats(CoreStats):
    special_attack: int = Field(default=0, alias="specialAttack")
    special_defense: int = Field(default=0, alias="specialDefense")
    speed: int = 0


# Model for one card in the listing (GET /api/pokemon)
class PokemonSummary(_ResponseModel):
    id: int
    name: str
    types: list[str]
    sprite: str | None
    stats: CoreStats


class Pagination(_ResponseModel):
    total: int
    total_pages: int = Field(alias="totalPages")
    current_page: int = Field(alias="currentPage")
    has_more: bool = Field(alias="hasMore")


class PokemonListResponse(_ResponseModel):
    pokemon: list[PokemonSummary]
    pagination: Pagination


class EvolutionEntry(_ResponseModel):
    id: int
    name: str
    sprite: str | None


class MoveEntry(_ResponseModel):
    name: str
    type: str
    power: int | None
    accuracy: int | None


# Model for the detail page (GET /api/pokemon/{id})
class PokemonDetailResponse(_ResponseModel):
    id: int
    name: str
    types: list[str]
    sprite: str | None
    stats: FullStats
    height: int
    weight: int
    abilities: list[str]
    description: str
    evolution_chain: list[EvolutionEntry] = Field(alias="evolutionChain")
    moves: list[MoveEntry]


class TypeListResponse(_ResponseModel):
    types: list[str]


class ErrorResponse(_ResponseModel):
    error: str
