# SPDX-FileCopyrightText: 2022-present Meier, Moritz <mome@uni-bremen.de>
#
# SPDX-License-Identifier: MIT
__version__ = '0.1.0'


def get_git_branch():
    """
    Tries to determine the current git branch by calling the git CLI.
    """
    import subprocess as sp
    from pathlib import Path
    module_folder = Path(__file__).parent
    try:
        branch = sp.run(
            ["git", "rev-parse", "--abbrev-ref", "HEAD"],
            cwd=module_folder, capture_output=True,
        ).stdout.decode().strip()
        commit = sp.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=module_folder, capture_output=True,
        ).stdout.decode().strip()
    except FileNotFoundError:
        # git is not installed
        return "", ""
    return branch, commit
