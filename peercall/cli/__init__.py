# SPDX-FileCopyrightText: 2022-present Meier, Moritz <mome@uni-bremen.de>
#
# SPDX-License-Identifier: MIT

from pathlib import Path

import click

from ..__about__ import __version__, get_git_branch
from .. import state

from .call import call
from .configure import config
from .list import list
from .peers import peers
from .serve import serve


git_branch, git_commit = get_git_branch()

peercall_path = Path(__file__).parent.parent

if git_branch:
    help_message = f"%(prog)s, version %(version)s from {peercall_path} (git branch: {git_branch}, commit: {git_commit})"
else:
    help_message = f"%(prog)s, version %(version)s from {peercall_path}"


class AliasedGroup(click.Group):
    """
    Alias for each sub-command with the three leading letters.
    # stolen from: https://click.palletsprojects.com/en/8.1.x/advanced/
    """

    def get_command(self, ctx, cmd_name):
        rv = super().get_command(ctx, cmd_name)
        if rv is not None:
            return rv
        matches = [
            x for x in self.list_commands(ctx)
            if (len(cmd_name) == 3 and x.startswith(cmd_name)) or (x == cmd_name)
        ]
        if not matches:
            return None
        elif len(matches) == 1:
            return super().get_command(ctx, matches[0])
        ctx.fail(f"Too many matches: {', '.join(sorted(matches))}")

    def resolve_command(self, ctx, args):
        # always return the full command name
        _, cmd, args = super().resolve_command(ctx, args)
        return cmd.name, cmd, args


@click.group(
    cls=AliasedGroup,
    context_settings={'help_option_names': ['-h', '--help']},
    invoke_without_command=False)
@click.version_option(version=__version__, prog_name='peercall', message=help_message)
@click.option(
    "--config", "-c", "config_files", multiple=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Additional configuration file.")
@click.pass_context
def peercall(ctx: click.Context, config_files):
    if config_files:
        state.reload_config(config_files)

peercall.add_command(call)
peercall.add_command(config)
peercall.add_command(list)
peercall.add_command(peers)
peercall.add_command(serve)
