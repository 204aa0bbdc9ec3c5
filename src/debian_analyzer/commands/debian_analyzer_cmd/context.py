import argparse
import dataclasses
import logging
import os
from typing import (
    Callable,
    Dict,
    Optional,
    Sequence,
    Union,
)

from debian_analyzer.abstract_control import ControlEditor, SourceView
from debian_analyzer.rules import RulesEditor
from debian_analyzer.util import (
    _error,
    change_log_level,
    setup_logging,
)

CommandHandler = Callable[["CommandContext"], None]
ArgparserConfigurator = Callable[[argparse.ArgumentParser], None]


def add_arg(
    *name_or_flags: str,
    **kwargs,
) -> ArgparserConfigurator:
    def _configurator(argparser: argparse.ArgumentParser) -> None:
        argparser.add_argument(
            *name_or_flags,
            **kwargs,
        )

    return _configurator


@dataclasses.dataclass(slots=True, frozen=True)
class CommandArg:
    parsed_args: argparse.Namespace


class CommandContext:
    """What a subcommand handler gets: the parsed arguments plus lazily opened editors

    Editors are opened on first use and shared between calls, so a handler
    that edits through `source()` commits the same document with
    `control_editor().commit()`.
    """

    def __init__(self, parsed_args: argparse.Namespace) -> None:
        self.parsed_args = parsed_args
        self._control_editor: Optional[ControlEditor] = None
        self._rules_editor: Optional[RulesEditor] = None

    @property
    def directory(self) -> str:
        return getattr(self.parsed_args, "directory", None) or "."

    @property
    def debian_dir(self) -> str:
        return os.path.join(self.directory, "debian")

    def must_be_called_in_source_root(self) -> None:
        if not os.path.isdir(self.debian_dir):
            _error(
                f"Expected a source package root; {self.debian_dir} does not exist or is not a directory."
            )

    def control_editor(self) -> ControlEditor:
        editor = self._control_editor
        if editor is None:
            self.must_be_called_in_source_root()
            try:
                editor = ControlEditor.from_directory(self.directory)
            except FileNotFoundError as e:
                _error(
                    f'Cannot open the package metadata: "{e.filename}" does not exist.'
                )
            self._control_editor = editor
        return editor

    def source(self) -> SourceView:
        source = self.control_editor().source()
        if source is None:
            _error("The package metadata does not have a source package")
        return source

    def rules_editor(self) -> RulesEditor:
        editor = self._rules_editor
        if editor is None:
            self.must_be_called_in_source_root()
            try:
                editor = RulesEditor.from_directory(self.directory)
            except FileNotFoundError:
                _error(f"{os.path.join(self.debian_dir, 'rules')} does not exist.")
            self._rules_editor = editor
        return editor


class Subcommand:
    __slots__ = ("name", "help_description")

    def __init__(self, name: str, *, help_description: Optional[str] = None) -> None:
        self.name = name
        self.help_description = help_description

    def configure(
        self,
        argparser: argparse.ArgumentParser,
        parents: Sequence[argparse.ArgumentParser] = (),
    ) -> None:
        # Does nothing by default
        pass

    def __call__(self, command_arg: CommandArg) -> None:
        raise NotImplementedError


class GenericSubCommand(Subcommand):
    __slots__ = ("_handler", "_configurators", "_log_only_to_stderr")

    def __init__(
        self,
        name: str,
        handler: CommandHandler,
        *,
        help_description: Optional[str] = None,
        configurators: Sequence[ArgparserConfigurator] = (),
        log_only_to_stderr: bool = False,
    ) -> None:
        super().__init__(name, help_description=help_description)
        self._handler = handler
        self._configurators = tuple(configurators)
        self._log_only_to_stderr = log_only_to_stderr

    def configure(
        self,
        argparser: argparse.ArgumentParser,
        parents: Sequence[argparse.ArgumentParser] = (),
    ) -> None:
        for configurator in self._configurators:
            configurator(argparser)

    def __call__(self, command_arg: CommandArg) -> None:
        context = CommandContext(command_arg.parsed_args)
        if self._log_only_to_stderr:
            # stdout is reserved for the output of the command
            setup_logging(reconfigure_logging=True, log_only_to_stderr=True)
        if context.parsed_args.debug_mode or os.environ.get(
            "DEBIAN_ANALYZER_DEBUG", ""
        ):
            change_log_level(logging.DEBUG)
        self._handler(context)


class DispatcherCommand(Subcommand):
    """A command whose first positional argument selects one of its subcommands"""

    __slots__ = ("_dest", "_metavar", "_subcommands", "_configured")

    def __init__(
        self,
        name: str,
        dest: str,
        *,
        help_description: Optional[str] = None,
        metavar: str = "command",
    ) -> None:
        super().__init__(name, help_description=help_description)
        self._dest = dest
        self._metavar = metavar
        self._subcommands: Dict[str, Subcommand] = {}
        self._configured = False

    def add_subcommand(self, subcommand: Subcommand) -> None:
        if subcommand.name in self._subcommands:
            raise ValueError(
                f"Internal error: Multiple handlers for {subcommand.name} on topic {self.name}"
            )
        self._subcommands[subcommand.name] = subcommand

    def add_dispatching_subcommand(
        self,
        name: str,
        dest: str,
        *,
        help_description: Optional[str] = None,
        metavar: str = "command",
    ) -> "DispatcherCommand":
        dispatcher = DispatcherCommand(
            name,
            dest,
            help_description=help_description,
            metavar=metavar,
        )
        self.add_subcommand(dispatcher)
        return dispatcher

    def register_subcommand(
        self,
        name: str,
        *,
        help_description: Optional[str] = None,
        argparser: Optional[
            Union[ArgparserConfigurator, Sequence[ArgparserConfigurator]]
        ] = None,
        log_only_to_stderr: bool = False,
    ) -> Callable[[CommandHandler], GenericSubCommand]:
        if argparser is None:
            configurators: Sequence[ArgparserConfigurator] = ()
        elif callable(argparser):
            configurators = (argparser,)
        else:
            configurators = argparser

        def _annotation_impl(func: CommandHandler) -> GenericSubCommand:
            subcommand = GenericSubCommand(
                name,
                func,
                help_description=help_description,
                configurators=configurators,
                log_only_to_stderr=log_only_to_stderr,
            )
            self.add_subcommand(subcommand)
            return subcommand

        return _annotation_impl

    def configure(
        self,
        argparser: argparse.ArgumentParser,
        parents: Sequence[argparse.ArgumentParser] = (),
    ) -> None:
        """Add the subcommands to `argparser`

        Every subcommand parser inherits the options of `parents`, so shared
        options are accepted both before and after the subcommand name.
        """
        if self._configured:
            raise TypeError("Cannot configure twice!")
        if not self._subcommands:
            raise ValueError(
                f"Internal error: No subcommands for subcommand {self.name} (then why do we have it?)"
            )
        subparsers = argparser.add_subparsers(
            dest=self._dest,
            required=True,
            metavar=self._metavar,
        )
        for subcommand in self._subcommands.values():
            parser = subparsers.add_parser(
                subcommand.name,
                help=subcommand.help_description,
                parents=list(parents),
                allow_abbrev=False,
            )
            subcommand.configure(parser, parents)
        self._configured = True

    def __call__(self, command_arg: CommandArg) -> None:
        v = getattr(command_arg.parsed_args, self._dest, None)
        subcommand = self._subcommands.get(v) if v is not None else None
        assert (
            subcommand is not None
        ), f"Internal error: {v} was accepted as a topic, but it was not registered?"
        subcommand(command_arg)


ROOT_COMMAND = DispatcherCommand(
    "root",
    dest="command",
    metavar="COMMAND",
)
