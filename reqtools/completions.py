"""
Shell completion scripts, generated from the argument parser so they never
drift from the real options.
"""

from argparse import SUPPRESS
from argparse import Action
from argparse import ArgumentParser

BINARY = "git-req"


def _options(parser: ArgumentParser) -> list[Action]:
    return [action for action in parser._actions if action.option_strings and action.help != SUPPRESS]


def _takes_value(action: Action) -> bool:
    return action.nargs != 0


def _single_quoted(text: str) -> str:
    return text.replace("'", "'\\''")


def bash_completion(parser: ArgumentParser) -> str:
    words = " ".join(option for action in _options(parser) for option in action.option_strings)
    return (
        "_git_req() {\n"
        "    local cur\n"
        '    cur="${COMP_WORDS[COMP_CWORD]}"\n'
        f"    COMPREPLY=( $(compgen -W '{words}' -- \"$cur\") )\n"
        "} &&\n"
        f"complete -F _git_req {BINARY}\n"
    )


def fish_completion(parser: ArgumentParser) -> str:
    lines = []
    for action in _options(parser):
        for command, condition in ((BINARY, ""), ("git", " -n '__fish_seen_subcommand_from req'")):
            parts = [f"complete -c {command}{condition}"]
            for option in action.option_strings:
                if option.startswith("--"):
                    parts.append(f"-l {option[2:]}")
                else:
                    parts.append(f"-s {option[1:]}")
            if _takes_value(action):
                parts.append("-r")
            if action.choices:
                parts.append(f"-a '{' '.join(action.choices)}'")
            parts.append(f"-d '{_single_quoted(action.help or '')}'")
            lines.append(" ".join(parts))
    return "\n".join(lines) + "\n"


def zsh_completion(parser: ArgumentParser) -> str:
    specs = []
    for action in _options(parser):
        description = _single_quoted(action.help or "").replace("[", "\\[").replace("]", "\\]")
        value = ""
        if _takes_value(action):
            choices = f"({' '.join(action.choices)})" if action.choices else ""
            value = f":{action.metavar or action.dest}:{choices}"
        for option in action.option_strings:
            specs.append(f"    '{option}[{description}]{value}'")
    specs.append("    '1:REQUEST_ID:'")
    return f"#compdef {BINARY}\n\n_arguments \\\n" + " \\\n".join(specs) + "\n"


GENERATORS = {
    "bash": bash_completion,
    "fish": fish_completion,
    "zsh": zsh_completion,
}


def generate(shell: str, parser: ArgumentParser) -> str:
    return GENERATORS[shell](parser)
