import argparse
import asyncio
import json
import sys

from dotenv import load_dotenv

from ruleforge import EngineSettings, create_ruleset_manager, validate_ruleset
from ruleforge.errors import RulesetLoadError
from ruleforge.utils.logger_config import setup_logging


def list_rulesets(manager):
    rulesets = manager.get_available_rulesets()
    if not rulesets:
        print("No rulesets found.")
        return

    print("Available Rulesets:")
    for info in rulesets:
        print(f"ID: {info.id}, Name: {info.name}, Version: {info.version}")


async def show_phase(manager, ruleset_id: str, phase: str):
    await manager.set_active_ruleset(ruleset_id)
    functions = await manager.get_phase_functions(phase)
    print(json.dumps([f.tool_schema() for f in functions], indent=2))


def validate(manager, ruleset_id: str) -> bool:
    result = validate_ruleset(manager.repository.load(ruleset_id))
    for error in result.errors:
        print(f"ERROR: {error}")
    for warning in result.warnings:
        print(f"WARNING: {warning}")
    print(result.summary)
    return result.is_valid


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Inspect and validate ruleset files.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List available rulesets")
    phase_parser = sub.add_parser("phase", help="Print the tool schemas of a phase")
    phase_parser.add_argument("ruleset_id")
    phase_parser.add_argument("phase")
    validate_parser = sub.add_parser("validate", help="Lint a ruleset")
    validate_parser.add_argument("ruleset_id")
    args = parser.parse_args(argv)

    load_dotenv()
    settings = EngineSettings.from_env(load_env_file=False)
    setup_logging(settings.log_level)
    manager = create_ruleset_manager(settings)

    try:
        if args.command == "list":
            list_rulesets(manager)
        elif args.command == "phase":
            asyncio.run(show_phase(manager, args.ruleset_id, args.phase))
        elif args.command == "validate":
            return 0 if validate(manager, args.ruleset_id) else 1
    except RulesetLoadError as e:
        print(e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
