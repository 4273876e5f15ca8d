import pytest

from ruleforge.engine.compiler import FunctionCompiler, parameter_type
from ruleforge.errors import PreconditionFailure
from ruleforge.models.ruleset import RulesetDocument
from tests.conftest import Trainer

USE_ITEM = {
    "id": "use_item",
    "name": "UseItem",
    "description": "Use one item from the bag",
    "parameters": [{"name": "itemName", "type": "string", "required": True}],
    "ruleValidations": ["character.inventory[{{itemName}}] > 0"],
    "effects": [{"target": "character.inventory[{{itemName}}]", "operation": "subtract", "value": 1}],
}


@pytest.mark.parametrize(
    "tag, expected",
    [
        ("string", str),
        ("int", int),
        ("bool", bool),
        ("boolean", bool),
        ("double", float),
        ("float", float),
        ("object", dict),
        ("array", list),
        ("uuid", str),
        (None, str),
    ],
)
def test_parameter_type_mapping(tag, expected):
    assert parameter_type(tag) is expected


def test_compile_is_idempotent(compiler):
    first = compiler.compile(USE_ITEM)
    second = compiler.compile(USE_ITEM)
    assert first == second
    assert first.name == "UseItem"
    assert first.parameters[0].python_type is str


def test_compile_malformed_definition_returns_none(compiler, caplog):
    assert compiler.compile({"description": "no name"}) is None
    assert compiler.compile("not an object") is None
    assert "Invalid function definition" in caplog.text


def test_bind_arguments_coerces_declared_types(compiler):
    function = compiler.compile(
        {
            "name": "BuyItem",
            "parameters": [
                {"name": "quantity", "type": "int"},
                {"name": "rare", "type": "bool"},
                {"name": "note", "type": "string"},
            ],
        }
    )
    bound = function.bind_arguments({"quantity": "3", "rare": "true", "note": 5, "extra": "kept"})
    assert bound == {"quantity": 3, "rare": True, "note": "5", "extra": "kept"}


def test_bind_arguments_keeps_uncoercible_value(compiler):
    function = compiler.compile({"name": "Buy", "parameters": [{"name": "quantity", "type": "int"}]})
    assert function.bind_arguments({"quantity": "many"}) == {"quantity": "many"}


def test_tool_schema(compiler):
    function = compiler.compile(
        {
            "name": "BuyItem",
            "description": "Buy things",
            "parameters": [
                {"name": "itemName", "type": "string", "required": True, "description": "What to buy"},
                {"name": "quantity", "type": "int"},
            ],
        }
    )
    assert function.tool_schema() == {
        "type": "function",
        "function": {
            "name": "BuyItem",
            "description": "Buy things",
            "parameters": {
                "type": "object",
                "properties": {
                    "itemName": {"type": "string", "description": "What to buy"},
                    "quantity": {"type": "integer"},
                },
                "required": ["itemName"],
            },
        },
    }


# =============================================================================
# INVOCATION
# =============================================================================


@pytest.mark.asyncio
async def test_use_item_consumes_one_potion(compiler):
    trainer = Trainer(inventory={"potion": 2})
    use_item = compiler.compile(USE_ITEM)

    result = await use_item.invoke({"itemName": "potion"}, character=trainer)

    assert result.success
    assert trainer.inventory["potion"] == 1
    assert result.narrative.startswith("Function UseItem executed successfully. Effects:")
    assert len(result.applied_effects) == 1


@pytest.mark.asyncio
async def test_use_item_last_potion_then_fails(compiler):
    trainer = Trainer(inventory={"potion": 1})
    use_item = compiler.compile(USE_ITEM)

    assert (await use_item.invoke({"itemName": "potion"}, character=trainer)).success
    result = await use_item.invoke({"itemName": "potion"}, character=trainer)

    assert not result.success
    assert result.failed_precondition == "character.inventory[potion] > 0"
    assert result.narrative == "Rule validation failed: character.inventory[potion] > 0"
    assert result.effects == []
    assert trainer.inventory["potion"] == 0


@pytest.mark.asyncio
async def test_failed_precondition_applies_no_effects(compiler):
    trainer = Trainer(pokemon=["a", "b", "c", "d", "e", "f"], inventory={"pokeball": 1})
    catch = compiler.compile(
        {
            "name": "CatchPokemon",
            "parameters": [{"name": "pokemonId"}],
            "ruleValidations": ["character.inventory[pokeball] > 0", "character.pokemon.length < 6"],
            "effects": [
                {"target": "character.inventory[pokeball]", "operation": "subtract", "value": 1},
                {"target": "character.pokemon", "operation": "add", "value": "{{pokemonId}}"},
            ],
        }
    )
    before = trainer.model_dump()
    result = await catch.invoke({"pokemonId": "mew"}, character=trainer)

    assert not result.success
    assert result.failed_precondition == "character.pokemon.length < 6"
    assert trainer.model_dump() == before
    with pytest.raises(PreconditionFailure):
        result.raise_for_status()


@pytest.mark.asyncio
async def test_effect_failure_does_not_stop_later_effects(compiler):
    trainer = Trainer(level=1)
    function = compiler.compile(
        {
            "name": "Train",
            "effects": [
                {"target": "character.title", "operation": "set", "value": "Ace"},
                {"target": "character.level", "operation": "add", "value": 1},
            ],
        }
    )
    result = await function.invoke({}, character=trainer)

    assert result.success
    assert result.has_failures
    assert len(result.failed_effects) == 1
    assert len(result.applied_effects) == 1
    assert trainer.level == 2
    assert "Effect failed:" in result.narrative


@pytest.mark.asyncio
async def test_effects_apply_in_declaration_order(compiler):
    trainer = Trainer(level=1)
    function = compiler.compile(
        {
            "name": "Reset",
            "effects": [
                {"target": "character.level", "operation": "set", "value": 10},
                {"target": "character.level", "operation": "add", "value": 5},
                {"target": "character.level", "operation": "set", "value": 3},
            ],
        }
    )
    await function.invoke(character=trainer)
    assert trainer.level == 3


@pytest.mark.asyncio
async def test_script_precondition_sees_arguments(compiler):
    trainer = Trainer(money=100)
    function = compiler.compile(
        {
            "name": "BuyItem",
            "parameters": [{"name": "cost", "type": "int"}],
            "ruleValidations": ["script: character.money >= context.args.cost"],
            "effects": [{"target": "character.money", "operation": "subtract", "value": "{{cost}}"}],
        }
    )
    assert (await function.invoke({"cost": "60"}, character=trainer)).success
    assert trainer.money == 40
    assert not (await function.invoke({"cost": 60}, character=trainer)).success
    assert trainer.money == 40


@pytest.mark.asyncio
async def test_script_precondition_cannot_mutate_character(compiler):
    trainer = Trainer(inventory={"potion": 3})
    function = compiler.compile(
        {
            "name": "Sneaky",
            "ruleValidations": ["script: character.inventory.clear() and false"],
            "effects": [{"target": "character.level", "operation": "add", "value": 1}],
        }
    )
    before = trainer.model_dump()

    result = await function.invoke(character=trainer)

    assert not result.success
    assert trainer.model_dump() == before
    assert trainer.inventory == {"potion": 3}


@pytest.mark.asyncio
async def test_function_without_effects(compiler):
    result = await compiler.compile({"name": "Look"}).invoke()
    assert result.success
    assert result.narrative == "Function Look executed successfully. No effects."


@pytest.mark.asyncio
async def test_deny_policy_blocks_unrecognized_precondition(script_engine):
    compiler = FunctionCompiler(script_engine, unrecognized_policy="deny")
    function = compiler.compile({"name": "Evolve", "ruleValidations": ["character.level >= 16"]})
    result = await function.invoke(character=Trainer(level=20))
    assert not result.success


# =============================================================================
# PHASE COMPILATION
# =============================================================================


def test_compile_functions_for_phase(compiler, pokemon_ruleset):
    functions = compiler.compile_functions_for_phase(pokemon_ruleset, "Exploration")
    assert [f.name for f in functions] == ["UseItem", "BuyItem", "CatchPokemon"]


def test_unknown_phase_is_empty(compiler, pokemon_ruleset):
    assert compiler.compile_functions_for_phase(pokemon_ruleset, "Combat") == []


def test_malformed_and_duplicate_definitions_are_skipped(compiler):
    ruleset = RulesetDocument.model_validate(
        {
            "metadata": {"id": "broken"},
            "functionDefinitions": {
                "Exploration": [
                    {"name": "Walk"},
                    {"description": "no name"},
                    "not an object",
                    {"name": "Walk", "description": "second definition"},
                    {"name": "Run", "effects": [{"operation": "set"}]},
                    {"name": "Swim"},
                ]
            },
        }
    )
    functions = compiler.compile_functions_for_phase(ruleset, "exploration")
    assert [f.name for f in functions] == ["Walk", "Swim"]
    assert functions[0].description == ""
