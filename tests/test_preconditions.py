import pytest

from ruleforge.engine.preconditions import (
    CollectionLength,
    EmptyCheck,
    MapMembership,
    PreconditionEvaluator,
    Unrecognized,
    UnrecognizedPolicy,
    parse_precondition,
)
from tests.conftest import Trainer


# =============================================================================
# PARSING
# =============================================================================


@pytest.mark.parametrize(
    "expression, negated",
    [
        ("character.name == ''", False),
        ('character.name == ""', False),
        ("character.nickname == null", False),
        ("character.name != ''", True),
    ],
)
def test_parse_empty_check(expression, negated):
    node = parse_precondition(expression)
    assert isinstance(node, EmptyCheck)
    assert node.root == "character"
    assert node.negated is negated


def test_parse_collection_length():
    node = parse_precondition("character.pokemon.length < 6")
    assert node == CollectionLength("character", ("pokemon",), "<", 6)


def test_parse_map_membership():
    node = parse_precondition("character.inventory[pokeball] > 0")
    assert node == MapMembership("character", ("inventory",), "pokeball", ">", 0)


def test_parse_game_state_root():
    node = parse_precondition("gameState.badges.length >= 8")
    assert isinstance(node, CollectionLength)
    assert node.root == "gameState"


@pytest.mark.parametrize(
    "expression",
    [
        "character.level >= 5",
        "player.pokemon.length < 6",
        "character.pokemon.length < six",
        "character.pokemon.length < 6 and true",
        "",
    ],
)
def test_parse_unrecognized(expression):
    assert isinstance(parse_precondition(expression), Unrecognized)


# =============================================================================
# EVALUATION
# =============================================================================


@pytest.fixture
def evaluator(script_engine):
    return PreconditionEvaluator(script_engine)


def roots_for(character=None, game_state=None):
    return {"character": character, "gameState": game_state}


@pytest.mark.asyncio
async def test_empty_check_on_empty_and_set_values(evaluator):
    blank = Trainer(name="")
    named = Trainer(name="Misty")
    assert await evaluator.evaluate("character.name == ''", roots_for(blank))
    assert not await evaluator.evaluate("character.name == ''", roots_for(named))
    assert await evaluator.evaluate("character.nickname == null", roots_for(named))
    assert await evaluator.evaluate("character.name != ''", roots_for(named))


@pytest.mark.asyncio
async def test_empty_check_missing_property_is_false(evaluator, trainer):
    assert not await evaluator.evaluate("character.title == ''", roots_for(trainer))


@pytest.mark.asyncio
async def test_collection_length(evaluator, trainer):
    assert await evaluator.evaluate("character.pokemon.length < 6", roots_for(trainer))
    assert await evaluator.evaluate("character.pokemon.length == 1", roots_for(trainer))
    assert not await evaluator.evaluate("character.pokemon.length > 1", roots_for(trainer))


@pytest.mark.asyncio
async def test_collection_length_against_full_team(evaluator):
    full = Trainer(pokemon=[f"mon{i}" for i in range(6)])
    assert not await evaluator.evaluate("character.pokemon.length < 6", roots_for(full))


@pytest.mark.asyncio
async def test_property_lookup_is_case_insensitive(evaluator, trainer):
    assert await evaluator.evaluate("character.Pokemon.length == 1", roots_for(trainer))


@pytest.mark.asyncio
async def test_map_membership(evaluator, trainer):
    assert await evaluator.evaluate("character.inventory[pokeball] > 0", roots_for(trainer))
    assert await evaluator.evaluate("character.inventory[potion] == 2", roots_for(trainer))
    assert not await evaluator.evaluate("character.inventory[potion] > 2", roots_for(trainer))


@pytest.mark.asyncio
async def test_map_membership_absent_key(evaluator, trainer):
    assert not await evaluator.evaluate("character.inventory[masterball] > 0", roots_for(trainer))
    assert await evaluator.evaluate("character.inventory[masterball] == 0", roots_for(trainer))


@pytest.mark.asyncio
async def test_map_keys_match_exactly(evaluator, trainer):
    assert not await evaluator.evaluate("character.inventory[Potion] > 0", roots_for(trainer))
    assert await evaluator.evaluate("character.inventory[Potion] == 0", roots_for(trainer))


@pytest.mark.asyncio
async def test_map_membership_on_non_mapping_is_false(evaluator, trainer):
    assert not await evaluator.evaluate("character.pokemon[pikachu] > 0", roots_for(trainer))


@pytest.mark.asyncio
async def test_game_state_root(evaluator, trainer, game_state):
    roots = roots_for(trainer, game_state)
    assert await evaluator.evaluate("gameState.ruleset_game_data.party.length == 0", roots)


@pytest.mark.asyncio
async def test_missing_root_is_false(evaluator, trainer):
    assert not await evaluator.evaluate("gameState.badges.length == 0", roots_for(trainer))


@pytest.mark.asyncio
async def test_dict_roots(evaluator):
    character = {"inventory": {"potion": 1}, "pokemon": []}
    assert await evaluator.evaluate("character.inventory[potion] > 0", roots_for(character))
    assert await evaluator.evaluate("character.pokemon.length == 0", roots_for(character))


# =============================================================================
# UNRECOGNIZED POLICY
# =============================================================================


@pytest.mark.asyncio
async def test_unrecognized_allowed_by_default(script_engine, trainer):
    evaluator = PreconditionEvaluator(script_engine)
    assert await evaluator.evaluate("character.level >= 99", roots_for(trainer))


@pytest.mark.asyncio
async def test_length_of_missing_property_follows_policy(script_engine, trainer):
    allow = PreconditionEvaluator(script_engine, UnrecognizedPolicy.ALLOW)
    deny = PreconditionEvaluator(script_engine, UnrecognizedPolicy.DENY)
    assert await allow.evaluate("character.party.length < 6", roots_for(trainer))
    assert not await deny.evaluate("character.party.length < 6", roots_for(trainer))


@pytest.mark.asyncio
async def test_unrecognized_denied(script_engine, trainer):
    evaluator = PreconditionEvaluator(script_engine, UnrecognizedPolicy.DENY)
    assert not await evaluator.evaluate("character.level >= 1", roots_for(trainer))


@pytest.mark.asyncio
async def test_unrecognized_evaluated_as_script(script_engine, trainer):
    evaluator = PreconditionEvaluator(script_engine, "script")
    assert await evaluator.evaluate("character.level >= 5", roots_for(trainer))
    assert not await evaluator.evaluate("character.level >= 99", roots_for(trainer))


@pytest.mark.asyncio
async def test_script_prefix_always_uses_sandbox(script_engine, trainer):
    evaluator = PreconditionEvaluator(script_engine, UnrecognizedPolicy.ALLOW)
    assert not await evaluator.evaluate("script: character.level >= 99", roots_for(trainer))
    assert await evaluator.evaluate("script: character.level >= 5", roots_for(trainer))


@pytest.mark.asyncio
async def test_script_without_engine_is_false(trainer):
    evaluator = PreconditionEvaluator(None, UnrecognizedPolicy.SCRIPT)
    assert not await evaluator.evaluate("character.level >= 1", roots_for(trainer))


@pytest.mark.asyncio
async def test_unsafe_script_precondition_is_false(script_engine, trainer):
    evaluator = PreconditionEvaluator(script_engine)
    assert not await evaluator.evaluate("script: require('fs')", roots_for(trainer))
