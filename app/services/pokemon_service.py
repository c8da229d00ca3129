import logging
import math
import re
from app.clients.pokeapi_client import PokeAPIClient
from app.config import Settings, get_settings
from app.models import (
    CoreStats,
    EvolutionEntry,
    FullStats,
    MoveEntry,
    Pagination,
    PokemonDetailResponse,
    PokemonListResponse,
    PokemonSummary,
)
from app.query import ListQuery, matches_search, resource_id_from_url
from app.services.concurrency import gather_all, gather_settled

logger = logging.getLogger(__name__)

CORE_STATS = {"hp": "hp", "attack": "attack", "defense": "defense"}
FULL_STATS = {
    **CORE_STATS,
    "special_attack": "special-attack",
    "special_defense": "special-defense",
    "speed": "speed",
}

# Literal escape tokens (backslash + f/n/r) as well as real whitespace runs
_ESCAPE_TOKENS = re.compile(r"\\[fnr]")
_WHITESPACE = re.compile(r"\s+")


def extract_stats(stats: list[dict], fields: dict[str, str]) -> dict[str, int]:
    """Looks stats up by their PokeAPI name, never by position. Missing stats are 0."""
    by_name = {
        entry.get("stat", {}).get("name"): entry.get("base_stat", 0)
        for entry in stats or []
    }
    return {field: by_name.get(stat_name) or 0 for field, stat_name in fields.items()}


def normalize_flavor_text(text: str) -> str:
    text = _ESCAPE_TOKENS.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def pick_description(species: dict, language: str) -> str:
    """First flavor text in the requested language, normalized. Empty when there is none."""
    return next(
        (
            normalize_flavor_text(entry["flavor_text"])
            for entry in species.get("flavor_text_entries", [])
            if entry.get("language", {}).get("name") == language
        ),
        "",
    )


def pick_sprite(pokemon: dict, prefer_artwork: bool = True) -> str | None:
    sprites = pokemon.get("sprites") or {}
    if prefer_artwork:
        artwork = ((sprites.get("other") or {}).get("official-artwork") or {}).get("front_default")
        if artwork:
            return artwork
    return sprites.get("front_default")


def type_names(pokemon: dict) -> list[str]:
    return [entry["type"]["name"] for entry in pokemon.get("types", [])]


def evolution_nodes(chain: dict, strategy: str) -> list[dict]:
    """
    Flattens the evolution tree into the list of nodes to show.

    'tree' walks every branch breadth-first, siblings in upstream order.
    'first_child' follows only the first evolution at each stage.
    """
    if strategy == "first_child":
        nodes = []
        link = chain
        while link:
            nodes.append(link)
            children = link.get("evolves_to") or []
            link = children[0] if children else None
        return nodes

    nodes = []
    level = [chain]
    while level:
        nodes.extend(level)
        level = [child for link in level for child in link.get("evolves_to") or []]
    return nodes


class PokemonService:
    def __init__(self, poke_client: PokeAPIClient, settings: Settings = None):
        self._poke_client = poke_client
        self._settings = settings or get_settings()

    # --- Listing ---

    async def _candidates(self, types: tuple[str, ...]) -> list[dict]:
        if not types:
            return await self._poke_client.list_all_pokemon()

        # Fan-out: one request per type, any failure fails the whole listing
        members_by_type = await gather_all(self._poke_client.get_type(name) for name in types)

        # A Pokemon qualifies only if it belongs to every requested type
        first, *others = members_by_type
        other_names = [{member["name"] for member in members} for members in others]
        return [
            member for member in first
            if all(member["name"] in names for names in other_names)
        ]

    @staticmethod
    def _to_summary(pokemon: dict) -> PokemonSummary:
        return PokemonSummary(
            id=pokemon["id"],
            name=pokemon["name"],
            types=type_names(pokemon),
            sprite=pick_sprite(pokemon, prefer_artwork=False),
            stats=CoreStats(**extract_stats(pokemon.get("stats"), CORE_STATS)),
        )

    async def list_pokemon(self, query: ListQuery) -> PokemonListResponse:
        """
        Resolves the candidate set (optionally intersected by type), filters by
        search, paginates, then fetches only the page's Pokemon in parallel.
        """
        candidates = await self._candidates(query.types)

        if query.search:
            candidates = [c for c in candidates if matches_search(c["name"], c["url"], query.search)]

        if query.sort == "name":
            candidates = sorted(candidates, key=lambda c: c["name"])
        elif query.sort == "id":
            candidates = sorted(candidates, key=lambda c: resource_id_from_url(c["url"]))

        total = len(candidates)
        total_pages = math.ceil(total / query.limit)
        page_slice = candidates[query.offset:query.offset + query.limit]

        details = await gather_all(self._poke_client.get_pokemon(c["url"]) for c in page_slice)
        summaries = [self._to_summary(pokemon) for pokemon in details]

        if query.sort == "type":
            summaries.sort(key=lambda s: s.types[0] if s.types else "")

        logger.info(
            f"Listed page {query.page}/{total_pages} ({len(summaries)} of {total} Pokemon, "
            f"types={list(query.types)}, search='{query.search}')"
        )
        return PokemonListResponse(
            pokemon=summaries,
            pagination=Pagination(
                total=total,
                total_pages=total_pages,
                current_page=query.page,
                has_more=query.page < total_pages,
            ),
        )

    # --- Detail ---

    async def _evolution_chain(self, chain: dict) -> list[EvolutionEntry]:
        nodes = evolution_nodes(chain, self._settings.evolution_strategy)
        ids = [resource_id_from_url(node["species"]["url"]) for node in nodes]

        # One fan-out group resolves every stage's image; order follows the nodes
        records = await gather_all(self._poke_client.get_pokemon(pokemon_id) for pokemon_id in ids)

        return [
            EvolutionEntry(id=pokemon_id, name=node["species"]["name"], sprite=pick_sprite(record))
            for pokemon_id, node, record in zip(ids, nodes, records)
        ]

    async def _moves(self, pokemon: dict) -> list[MoveEntry]:
        move_refs = pokemon.get("moves", [])[:self._settings.move_limit]
        results = await gather_settled(self._poke_client.get_move(ref["move"]["url"]) for ref in move_refs)

        moves = []
        for ref, result in zip(move_refs, results):
            if isinstance(result, Exception):
                # A single failed move is dropped, the detail still succeeds
                logger.warning(f"Dropping move '{ref['move']['name']}': {result}")
                continue
            try:
                moves.append(MoveEntry(
                    name=result["name"],
                    type=result["type"]["name"],
                    power=result.get("power"),
                    accuracy=result.get("accuracy"),
                ))
            except (KeyError, TypeError) as e:
                logger.warning(f"Dropping move '{ref['move']['name']}': malformed response ({e!r})")
        return moves

    async def get_pokemon_detail(self, pokemon_id: int) -> PokemonDetailResponse:
        """
        Sequential chain: pokemon -> species (description) -> evolution chain,
        then the first few moves in parallel, flattened into one response.
        """
        pokemon = await self._poke_client.get_pokemon(pokemon_id)
        species = await self._poke_client.get_species(pokemon["species"]["url"])
        description = pick_description(species, self._settings.description_language)

        evolution = await self._poke_client.get_evolution_chain(species["evolution_chain"]["url"])
        evolution_chain = await self._evolution_chain(evolution["chain"])

        moves = await self._moves(pokemon)

        return PokemonDetailResponse(
            id=pokemon["id"],
            name=pokemon["name"],
            types=type_names(pokemon),
            sprite=pick_sprite(pokemon),
            stats=FullStats(**extract_stats(pokemon.get("stats"), FULL_STATS)),
            height=pokemon["height"],
            weight=pokemon["weight"],
            abilities=[entry["ability"]["name"] for entry in pokemon.get("abilities", [])],
            description=description,
            evolution_chain=evolution_chain,
            moves=moves,
        )
