# config/tools/validate_config.py

import sys           # for exit codes
from pprint import pprint  # for structured printing

# make src discoverable if running as a script
from pathlib import Path
# __file__ is .../config/tools/validate_config.py
# parents[2] is the project root; append ROOT/src
PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(PROJECT_ROOT / "src"))

from app.runtime import build_agent                          # assembles modules
from env.loader import load_command_table, load_settings     # import our loader
from instruction.errors import InvalidInstruction
from ui.base import LoggingUserInterface


def main() -> None:
    """Load settings and commands, and check every command resolves to a module action."""
    try:
        settings = load_settings()
        commands = load_command_table(Path(settings.commands_path))
        context = build_agent(settings, commands, ui=LoggingUserInterface())
    except Exception as e:                   # catch *any* error for debugging
        print("Config validation FAILED:", file=sys.stderr)
        print(repr(e), file=sys.stderr)
        sys.exit(1)                          # non-zero exit: CI will mark as failed

    broken = []
    for name, call in commands.items():
        try:
            context.instructions.resolve(call)
        except InvalidInstruction as e:
            broken.append((name, e))

    if broken:
        print("Config validation FAILED:", file=sys.stderr)
        for name, e in broken:
            print(f"  {name!r}: {e}", file=sys.stderr)
        sys.exit(1)

    print("Config validation OK.")
    print("\nAgent:", settings.name)
    print("\nConnection:")
    pprint(settings.connection)
    print("\nModules:")
    pprint(context.modules.describe())
    print("\nCommands:")
    pprint(sorted(commands))


if __name__ == "__main__":
    main()  # run main() only when script is executed directly
