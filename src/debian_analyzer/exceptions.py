from typing import cast


class DebianAnalyzerRuntimeError(RuntimeError):
    @property
    def message(self) -> str:
        return cast("str", self.args[0])


class EditorError(DebianAnalyzerRuntimeError):
    pass


class DocumentParseError(DebianAnalyzerRuntimeError):
    pass


class UnparsableRelationError(DocumentParseError):
    @property
    def relation_text(self) -> str:
        return cast("str", self.args[1])


class CompatLevelsLookupError(DebianAnalyzerRuntimeError):
    pass


class EnsureDebhelperError(DebianAnalyzerRuntimeError):
    pass


class DebhelperInWrongField(EnsureDebhelperError):
    def __init__(self, field: str) -> None:
        super().__init__(f"debhelper in {field}", field)

    @property
    def field(self) -> str:
        return cast("str", self.args[1])


class ComplexDebhelperCompatRule(EnsureDebhelperError):
    def __init__(self) -> None:
        super().__init__("Complex rule for debhelper-compat, aborting")


class DebhelperCompatWithoutVersion(EnsureDebhelperError):
    def __init__(self) -> None:
        super().__init__("debhelper-compat without version, aborting")


class InvalidVersionError(DebianAnalyzerRuntimeError):
    def __init__(self, version: str) -> None:
        super().__init__(f'Invalid version "{version}"', version)

    @property
    def version_text(self) -> str:
        return cast("str", self.args[1])
