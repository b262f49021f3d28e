import sys

import click
from click_help_colors import HelpColorsCommand
import toml

from .. import state
from .. import configuration


@click.command(cls=HelpColorsCommand, short_help="Print current configuration.")
@click.option("--escape", "-e", is_flag=True, help="Escape lines with a hash symbol.")
@click.option("--path", is_flag=True, help="Print path of all configuration paths found.")
def config(escape, path):
    if path:
        config_paths = configuration.get_config_paths()

        for path in config_paths:
            if path.exists():
                prefix = "*"
            else:
                prefix = " "
            print(prefix, path)
        return

    toml_code = toml.dumps(state.config)

    if escape:
        lines = toml_code.splitlines()
        lines = [
            '#' + ln if (ln.strip() and ln[0] not in '#[') else ln
            for ln in lines]
        toml_code = '\n'.join(lines)

    if sys.stdout.isatty():
        from pygments import highlight
        from pygments.lexers import TOMLLexer
        from pygments.formatters import Terminal256Formatter
        toml_code = highlight(toml_code, TOMLLexer(), Terminal256Formatter())

    print(toml_code)
