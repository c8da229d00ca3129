import pytest
from fastapi.testclient import TestClient
from app.main import app
from app.config import Settings
from app.dependencies import get_poke_client, get_settings
from app.clients.pokeapi_client import PokeAPIClient

BASE = "https://pokeapi.co/api/v2"
BULK_LIST_URL = f"{BASE}/pokemon?limit=100000&offset=0"


def ref(name, pokemon_id):
    return {"name": name, "url": f"{BASE}/pokemon/{pokemon_id}/"}


def pokemon_record(name, pokemon_id, types):
    return {
        "id": pokemon_id,
        "name": name,
        "types": [{"slot": i + 1, "type": {"name": t, "url": f"{BASE}/type/{t}/"}} for i, t in enumerate(types)],
        "sprites": {
            "front_default": f"https://img/{pokemon_id}.png",
            "other": {"official-artwork": {"front_default": f"https://art/{pokemon_id}.png"}},
        },
        "stats": [
            {"base_stat": 39, "effort": 0, "stat": {"name": "hp"}},
            {"base_stat": 52, "effort": 0, "stat": {"name": "attack"}},
            {"base_stat": 43, "effort": 0, "stat": {"name": "defense"}},
        ],
    }


MOCK_BULK_LIST = {
    "count": 3,
    "next": None,
    "previous": None,
    "results": [ref("Bulbasaur", 1), ref("Charmander", 4), ref("Squirtle", 7)],
}

MOCK_CHARMANDER = {
    **pokemon_record("charmander", 4, ["fire"]),
    "height": 6,
    "weight": 85,
    "abilities": [{"ability": {"name": "blaze"}}],
    "species": {"name": "charmander", "url": f"{BASE}/pokemon-species/4/"},
    "moves": [{"move": {"name": f"move-{i}", "url": f"{BASE}/move/{i}/"}} for i in range(1, 6)],
}

MOCK_SPECIES = {
    "flavor_text_entries": [
        {"flavor_text": "Obviously prefers\\fhot places.   When it rains,\nsteam", "language": {"name": "en"}},
    ],
    "evolution_chain": {"url": f"{BASE}/evolution-chain/2/"},
}

MOCK_EVOLUTION = {
    "chain": {
        "species": {"name": "charmander", "url": f"{BASE}/pokemon-species/4/"},
        "evolves_to": [
            {"species": {"name": "charmeleon", "url": f"{BASE}/pokemon-species/5/"}, "evolves_to": []},
        ],
    },
}


def mock_move(move_id):
    return {"name": f"move-{move_id}", "type": {"name": "normal"}, "power": 40, "accuracy": 100}


@pytest.fixture(scope="function")
def poke_client():
    """PokeAPIClient without cache or retries, so each mocked response is requested exactly once."""
    return PokeAPIClient(base_url=BASE, retries=0)

@pytest.fixture(scope="function")
def overrides(poke_client):
    app.dependency_overrides[get_poke_client] = lambda: poke_client
    app.dependency_overrides[get_settings] = lambda: Settings()
    yield
    # Cleanup: Clear dependency overrides after test
    app.dependency_overrides.clear()

@pytest.fixture(scope="function")
def test_client(overrides):
    with TestClient(app) as client:
        yield client

@pytest.fixture(scope="function")
def lenient_client(overrides):
    """Returns 500 responses for unhandled errors instead of re-raising them in the test."""
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client


# --- LISTING ---

@pytest.mark.httpx_mock
def test_e2e_list_first_page(httpx_mock, test_client):
    httpx_mock.add_response(url=BULK_LIST_URL, json=MOCK_BULK_LIST)
    httpx_mock.add_response(url=f"{BASE}/pokemon/1/", json=pokemon_record("bulbasaur", 1, ["grass", "poison"]))
    httpx_mock.add_response(url=f"{BASE}/pokemon/4/", json=pokemon_record("charmander", 4, ["fire"]))

    response = test_client.get("/api/pokemon", params={"page": "1", "limit": "2"})

    assert response.status_code == 200
    body = response.json()
    assert [p["name"] for p in body["pokemon"]] == ["bulbasaur", "charmander"]
    assert body["pokemon"][0] == {
        "id": 1,
        "name": "bulbasaur",
        "types": ["grass", "poison"],
        "sprite": "https://img/1.png",
        "stats": {"hp": 39, "attack": 52, "defense": 43},
    }
    assert body["pagination"] == {"total": 3, "totalPages": 2, "currentPage": 1, "hasMore": True}


@pytest.mark.httpx_mock
def test_e2e_list_search(httpx_mock, test_client):
    httpx_mock.add_response(url=BULK_LIST_URL, json=MOCK_BULK_LIST)
    httpx_mock.add_response(url=f"{BASE}/pokemon/4/", json=pokemon_record("Charmander", 4, ["fire"]))

    response = test_client.get("/api/pokemon", params={"search": "char"})

    assert response.status_code == 200
    names = [p["name"] for p in response.json()["pokemon"]]
    assert names == ["Charmander"]
    assert all("char" in name.lower() for name in names)
    assert response.json()["pagination"]["hasMore"] is False


@pytest.mark.httpx_mock
def test_e2e_list_malformed_params_fall_back_to_defaults(httpx_mock, test_client):
    httpx_mock.add_response(url=BULK_LIST_URL, json={"results": []})

    response = test_client.get("/api/pokemon", params={"page": "abc", "limit": "999", "types": ""})

    assert response.status_code == 200
    assert response.json() == {
        "pokemon": [],
        "pagination": {"total": 0, "totalPages": 0, "currentPage": 1, "hasMore": False},
    }


@pytest.mark.httpx_mock
def test_e2e_list_types_are_intersected(httpx_mock, test_client):
    httpx_mock.add_response(url=f"{BASE}/type/fire", json={"pokemon": [
        {"pokemon": ref("charmander", 4)},
        {"pokemon": ref("charizard", 6)},
    ]})
    httpx_mock.add_response(url=f"{BASE}/type/flying", json={"pokemon": [
        {"pokemon": ref("pidgey", 16)},
        {"pokemon": ref("charizard", 6)},
    ]})
    httpx_mock.add_response(url=f"{BASE}/pokemon/6/", json=pokemon_record("charizard", 6, ["fire", "flying"]))

    response = test_client.get("/api/pokemon", params={"types": "fire,flying"})

    assert response.status_code == 200
    assert [p["name"] for p in response.json()["pokemon"]] == ["charizard"]
    assert response.json()["pagination"]["total"] == 1


@pytest.mark.httpx_mock(assert_all_responses_were_requested=False)
def test_e2e_list_type_failure_is_a_500(httpx_mock, test_client):
    """One failing type fetch fails the whole listing: no partial results."""
    httpx_mock.add_response(url=f"{BASE}/type/fire", json={"pokemon": [{"pokemon": ref("charmander", 4)}]})
    httpx_mock.add_response(url=f"{BASE}/type/flying", status_code=503)

    response = test_client.get("/api/pokemon", params={"types": "fire,flying"})

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch Pokemon by type 'flying'"}
    assert "pokemon" not in response.json()


@pytest.mark.httpx_mock
def test_e2e_list_bulk_failure_is_a_500(httpx_mock, test_client):
    httpx_mock.add_response(url=BULK_LIST_URL, status_code=500)

    response = test_client.get("/api/pokemon")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch Pokemon list"}


# --- DETAIL ---

@pytest.mark.httpx_mock
def test_e2e_detail_with_one_failing_move(httpx_mock, test_client):
    httpx_mock.add_response(url=f"{BASE}/pokemon/4", json=MOCK_CHARMANDER)
    httpx_mock.add_response(url=f"{BASE}/pokemon-species/4/", json=MOCK_SPECIES)
    httpx_mock.add_response(url=f"{BASE}/evolution-chain/2/", json=MOCK_EVOLUTION)
    # Evolution stages are resolved by id (charmander itself is fetched again)
    httpx_mock.add_response(url=f"{BASE}/pokemon/4", json=MOCK_CHARMANDER)
    httpx_mock.add_response(url=f"{BASE}/pokemon/5", json=pokemon_record("charmeleon", 5, ["fire"]))
    # Only the first four moves are fetched; the third one fails
    httpx_mock.add_response(url=f"{BASE}/move/1/", json=mock_move(1))
    httpx_mock.add_response(url=f"{BASE}/move/2/", json=mock_move(2))
    httpx_mock.add_response(url=f"{BASE}/move/3/", status_code=500)
    httpx_mock.add_response(url=f"{BASE}/move/4/", json=mock_move(4))

    response = test_client.get("/api/pokemon/4")

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "charmander"
    assert body["sprite"] == "https://art/4.png"
    assert body["stats"] == {
        "hp": 39, "attack": 52, "defense": 43,
        "specialAttack": 0, "specialDefense": 0, "speed": 0,
    }
    assert body["height"] == 6
    assert body["weight"] == 85
    assert body["abilities"] == ["blaze"]
    assert body["description"] == "Obviously prefers hot places. When it rains, steam"
    assert body["evolutionChain"] == [
        {"id": 4, "name": "charmander", "sprite": "https://art/4.png"},
        {"id": 5, "name": "charmeleon", "sprite": "https://art/5.png"},
    ]
    assert [m["name"] for m in body["moves"]] == ["move-1", "move-2", "move-4"]
    assert body["moves"][0] == {"name": "move-1", "type": "normal", "power": 40, "accuracy": 100}


@pytest.mark.httpx_mock
@pytest.mark.parametrize("bad_id", ["abc", "0", "-3"])
def test_e2e_detail_invalid_id_is_a_400_without_upstream_calls(httpx_mock, test_client, bad_id):
    response = test_client.get(f"/api/pokemon/{bad_id}")

    assert response.status_code == 400
    assert response.json()["error"]
    assert httpx_mock.get_requests() == []


@pytest.mark.httpx_mock
def test_e2e_detail_upstream_failure_is_a_generic_500(httpx_mock, test_client):
    httpx_mock.add_response(url=f"{BASE}/pokemon/99999", status_code=404)

    response = test_client.get("/api/pokemon/99999")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch Pokemon 99999"}


@pytest.mark.httpx_mock
def test_e2e_detail_malformed_upstream_body_is_a_500(httpx_mock, lenient_client, caplog):
    # No species link: the aggregation cannot continue
    httpx_mock.add_response(url=f"{BASE}/pokemon/4", json={"id": 4, "name": "charmander"})

    response = lenient_client.get("/api/pokemon/4")

    assert response.status_code == 500
    assert response.json() == {"error": "Internal server error"}
    # The traceback is left to the server log; the app adds no second record
    assert not [r for r in caplog.records if r.name == "app.main"]


@pytest.mark.httpx_mock
def test_e2e_detail_without_id_redirects_to_listing(httpx_mock, test_client):
    # Trailing slash with no id never reaches the detail route
    response = test_client.get("/api/pokemon/", follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"].endswith("/api/pokemon")
    assert httpx_mock.get_requests() == []


# --- STATIC ROUTES ---

def test_e2e_types_are_static(test_client):
    response = test_client.get("/api/types")

    assert response.status_code == 200
    types = response.json()["types"]
    assert len(types) == 18
    assert "fire" in types and "fairy" in types


def test_e2e_health(test_client):
    assert test_client.get("/health").json() == {"status": "healthy"}
