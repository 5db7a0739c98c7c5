"""
Command template expansion for custom folder actions.

Supported tokens:
  {}      : the file path, shell-quoted
  {name}  : filename without extension
  {ext}   : extension including the leading dot
  {dir}   : containing directory

The expanded string is run by a shell, so templates may use ``&&``,
pipes and quoting.  Templates are user-authored configuration.
"""

import os
import shlex

SHELL = "bash"


def expand(template: str, file_path: str) -> str:
    """Return *template* with every token replaced for *file_path*.

    ``{}`` is replaced first, then ``{name}``, ``{ext}`` and ``{dir}``.
    """
    directory, base = os.path.split(file_path)
    name, ext = os.path.splitext(base)

    command = template.replace("{}", shlex.quote(file_path))
    command = command.replace("{name}", name)
    command = command.replace("{ext}", ext)
    command = command.replace("{dir}", directory)
    return command


def shell_argv(command: str) -> list[str]:
    """Return the argument vector that runs *command* through the shell."""
    return [SHELL, "-c", command]
