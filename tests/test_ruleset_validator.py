from ruleforge.services.ruleset_validator import validate_ruleset


def ruleset_with(definitions, **extra):
    return {
        "metadata": {"id": "lint"},
        "gameStateSchema": {"requiredCollections": []},
        "functionDefinitions": {"Exploration": definitions},
        **extra,
    }


def test_bundled_ruleset_is_valid(pokemon_ruleset):
    result = validate_ruleset(pokemon_ruleset)
    assert result.is_valid, result.errors
    assert result.summary.startswith("Validation passed")


def test_unparseable_document():
    result = validate_ruleset({"functionDefinitions": {}})
    assert not result.is_valid
    assert result.errors[0].startswith("Invalid ruleset document")


def test_missing_schema_is_warning(minimal_ruleset_data):
    result = validate_ruleset(minimal_ruleset_data)
    assert result.is_valid
    assert any("gameStateSchema" in w for w in result.warnings)


def test_malformed_and_duplicate_definitions():
    result = validate_ruleset(ruleset_with([{"name": "Walk"}, {"name": "Walk"}, {"description": "nameless"}]))
    assert not result.is_valid
    assert any("Duplicate function 'Walk'" in e for e in result.errors)
    assert any("#2" in e for e in result.errors)
    assert result.summary == "2 errors, 0 warnings"


def test_bad_effects():
    result = validate_ruleset(
        ruleset_with(
            [
                {
                    "name": "Break",
                    "effects": [
                        {"target": "character.level", "operation": "multiply", "value": 2},
                        {"target": "world.weather", "operation": "set", "value": "rain"},
                    ],
                }
            ]
        )
    )
    assert any("unknown operation 'multiply'" in e for e in result.errors)
    assert any("unsupported target path 'world.weather'" in e for e in result.errors)


def test_undeclared_placeholders_warn():
    result = validate_ruleset(
        ruleset_with(
            [
                {
                    "name": "Give",
                    "parameters": [{"name": "item"}],
                    "ruleValidations": ["character.inventory[{{other}}] > 0"],
                    "effects": [{"target": "character.inventory[{{item}}]", "operation": "add", "value": "{{count}}"}],
                }
            ]
        )
    )
    assert result.is_valid
    assert any("undeclared parameter 'other'" in w for w in result.warnings)
    assert any("undeclared parameter 'count'" in w for w in result.warnings)


def test_precondition_checks():
    result = validate_ruleset(
        ruleset_with(
            [
                {
                    "name": "Check",
                    "ruleValidations": ["character.level >= 5", "script: require('fs')"],
                }
            ]
        )
    )
    assert any("outside the built-in grammar" in w for w in result.warnings)
    assert any("script precondition is unsafe" in e for e in result.errors)
