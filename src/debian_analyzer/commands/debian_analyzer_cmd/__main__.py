#!/usr/bin/python3 -B
import argparse
import os
import sys
import textwrap
import traceback
from typing import (
    List,
    Optional,
)

from argcomplete import autocomplete

from debian_analyzer.abstract_control import ControlEditor
from debian_analyzer.commands.debian_analyzer_cmd.context import (
    CommandContext,
    add_arg,
    ROOT_COMMAND,
    CommandArg,
)
from debian_analyzer.debhelper import (
    ensure_minimum_debhelper_version,
    get_debhelper_compat_level,
    get_sequences,
    maximum_debhelper_compat_version,
    resolve_debhelper_compat_level,
)
from debian_analyzer.exceptions import DebianAnalyzerRuntimeError
from debian_analyzer.rules import (
    dh_invoke_add_with,
    dh_invoke_drop_with,
    dh_invoke_get_with,
)
from debian_analyzer.util import (
    _error,
    _warn,
    ColorizedArgumentParser,
    setup_logging,
    _info,
    program_name,
)
from debian_analyzer.version import __version__


def _common_args(*, top_level: bool) -> argparse.ArgumentParser:
    # Below the top level, an option only overrides what was given before
    # the subcommand when it is actually passed.
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-C",
        "--directory",
        dest="directory",
        action="store",
        default="." if top_level else argparse.SUPPRESS,
        help="The source package root to act on (default: the current directory)",
    )
    parser.add_argument(
        "-d",
        "--debug",
        dest="debug_mode",
        action="store_true",
        default=False if top_level else argparse.SUPPRESS,
        help="Enable debug logging and raw stack traces on errors.",
    )
    return parser


vcs_commands = ROOT_COMMAND.add_dispatching_subcommand(
    "vcs",
    dest="vcs_command",
    help_description="Inspect or change the Vcs-* fields of the source package",
)
rules_commands = ROOT_COMMAND.add_dispatching_subcommand(
    "rules",
    dest="rules_command",
    help_description="Inspect or change debian/rules",
)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    description = textwrap.dedent(
        """\
    The `debian-analyzer` program makes small, targeted edits to Debian packaging.

    Edits preserve the formatting of everything they do not touch and files are
    only rewritten when their content actually changes. Packages managed by
    debcargo (debian/debcargo.toml) are edited through their debcargo.toml.
    """
    )

    parser: argparse.ArgumentParser = ColorizedArgumentParser(
        description=description,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,
        prog=program_name(),
        parents=[_common_args(top_level=True)],
    )
    parser.add_argument("--version", action="version", version=__version__)

    ROOT_COMMAND.configure(parser, [_common_args(top_level=False)])

    autocomplete(parser)

    if argv is None:
        argv = sys.argv[1:]
    return parser.parse_args(argv)


def _commit(context: CommandContext, what: str) -> None:
    editor = context.control_editor()
    if editor.commit():
        _info(f"Updated {editor.path} ({what})")
    else:
        _info(f"No changes needed ({what})")


@ROOT_COMMAND.register_subcommand(
    "compat-level",
    log_only_to_stderr=True,
    help_description="Show the debhelper compat level of the package",
)
def _compat_level(context: CommandContext) -> None:
    context.must_be_called_in_source_root()
    try:
        editor = ControlEditor.from_directory(context.directory)
    except FileNotFoundError:
        # Packages with only debian/compat
        level = get_debhelper_compat_level(context.directory)
    else:
        level = resolve_debhelper_compat_level(editor, context.directory)
    if level is None:
        _error("Could not determine the debhelper compat level of the package")
    print(level)


@ROOT_COMMAND.register_subcommand(
    "ensure-debhelper-version",
    help_description="Make sure the package builds with at least the given debhelper version",
    argparser=add_arg(
        "minimum_version",
        metavar="VERSION",
        help="The minimum debhelper version",
    ),
)
def _ensure_debhelper_version(context: CommandContext) -> None:
    minimum_version = context.parsed_args.minimum_version
    ensure_minimum_debhelper_version(context.source(), minimum_version)
    _commit(context, f"debhelper >= {minimum_version}")


@ROOT_COMMAND.register_subcommand(
    "sequences",
    log_only_to_stderr=True,
    help_description="List the dh add-ons enabled via dh-sequence-* build dependencies",
)
def _sequences(context: CommandContext) -> None:
    for sequence in get_sequences(context.source()):
        print(sequence)


@ROOT_COMMAND.register_subcommand(
    "ensure-build-dep",
    help_description="Add a build dependency unless it is already present",
    argparser=add_arg(
        "relation",
        metavar="RELATION",
        help='The dependency to add such as "dh-sequence-python3" or "foo (>= 1.0) | bar"',
    ),
)
def _ensure_build_dep(context: CommandContext) -> None:
    relation = context.parsed_args.relation
    context.source().ensure_build_dep(relation)
    _commit(context, f"build dependency {relation}")


@ROOT_COMMAND.register_subcommand(
    "max-compat-level",
    log_only_to_stderr=True,
    help_description="Show the highest debhelper compat level usable for a release",
    argparser=add_arg(
        "release",
        metavar="RELEASE",
        help="The release name (such as bookworm or jammy)",
    ),
)
def _max_compat_level(context: CommandContext) -> None:
    print(maximum_debhelper_compat_version(context.parsed_args.release))


@vcs_commands.register_subcommand(
    "get",
    log_only_to_stderr=True,
    help_description="Show the URL of a Vcs-* field",
    argparser=add_arg(
        "vcs_type",
        metavar="TYPE",
        help="The VCS type (such as Git or Browser); case does not matter",
    ),
)
def _vcs_get(context: CommandContext) -> None:
    vcs_type = context.parsed_args.vcs_type
    url = context.source().get_vcs_url(vcs_type)
    if url is None:
        _error(f"The package has no Vcs-{vcs_type} field")
    print(url)


@vcs_commands.register_subcommand(
    "set",
    help_description="Set the URL of a Vcs-* field",
    argparser=[
        add_arg(
            "vcs_type",
            metavar="TYPE",
            help="The VCS type (such as Git or Browser); case does not matter",
        ),
        add_arg(
            "url",
            metavar="URL",
            help="The new URL",
        ),
    ],
)
def _vcs_set(context: CommandContext) -> None:
    parsed_args = context.parsed_args
    context.source().set_vcs_url(parsed_args.vcs_type, parsed_args.url)
    _commit(context, f"Vcs-{parsed_args.vcs_type}")


def _commit_rules(context: CommandContext, what: str) -> None:
    editor = context.rules_editor()
    if editor.commit():
        _info(f"Updated {editor.path} ({what})")
    else:
        _info(f"No changes needed ({what})")


@rules_commands.register_subcommand(
    "drop-pointless-overrides",
    help_description="Remove override targets that only run the command they override",
)
def _drop_pointless_overrides(context: CommandContext) -> None:
    count = context.rules_editor().discard_pointless_overrides()
    _commit_rules(context, f"{count} pointless override(s) removed")


@rules_commands.register_subcommand(
    "get-with",
    log_only_to_stderr=True,
    help_description="List the add-ons passed to dh via --with",
)
def _get_with(context: CommandContext) -> None:
    for line in context.rules_editor().dh_invocations():
        for addon in dh_invoke_get_with(line):
            print(addon)


@rules_commands.register_subcommand(
    "add-with",
    help_description="Pass an add-on to every dh invocation via --with",
    argparser=add_arg(
        "addon",
        metavar="NAME",
        help="The name of the dh add-on",
    ),
)
def _add_with(context: CommandContext) -> None:
    addon = context.parsed_args.addon
    context.rules_editor().update_dh_invocations(
        lambda line: dh_invoke_add_with(line, addon)
    )
    _commit_rules(context, f"--with {addon}")


@rules_commands.register_subcommand(
    "drop-with",
    help_description="Stop passing an add-on to dh via --with",
    argparser=add_arg(
        "addon",
        metavar="NAME",
        help="The name of the dh add-on",
    ),
)
def _drop_with(context: CommandContext) -> None:
    addon = context.parsed_args.addon
    context.rules_editor().update_dh_invocations(
        lambda line: dh_invoke_drop_with(line, addon)
    )
    _commit_rules(context, f"--with {addon} removed")


def _setup_and_parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    is_arg_completing = "_ARGCOMPLETE" in os.environ
    if not is_arg_completing:
        setup_logging()
    parsed_args = parse_args(argv)
    if is_arg_completing:
        # Completion exits from within parse_args; this is only reached on a bug.
        setup_logging()
    return parsed_args


def _reraise_in_debug_mode(debug_mode: bool) -> None:
    if debug_mode:
        _warn(
            "Re-raising original exception to show the full stack trace due to debug mode being active"
        )
        raise


def main(argv: Optional[List[str]] = None) -> None:
    parsed_args = _setup_and_parse_args(argv)
    try:
        ROOT_COMMAND(CommandArg(parsed_args))
    except DebianAnalyzerRuntimeError as e:
        _reraise_in_debug_mode(parsed_args.debug_mode)
        _error(e.message)
    except Exception as e:
        _reraise_in_debug_mode(parsed_args.debug_mode)
        _warn("Unhandled exception (Re-run with --debug to see the raw stack trace)")
        _warn("  ----- 8< ---- BEGIN STACK TRACE ---- 8< -----")
        traceback.print_exception(e)
        _warn("  ----- 8< ---- END STACK TRACE ---- 8< -----")
        _warn("Please file a bug with the full output.")
        _error(str(e))


if __name__ == "__main__":
    main()
