from typing import Optional

from .exceptions import EditorError
from .util import read_text_if_exists


class FileEditor:
    """Base class for editors of a single text document

    Subclasses provide `_serialize()`. `commit()` compares the serialized
    document to what is currently on disk and only writes when they differ.
    """

    __slots__ = ("_path",)

    def __init__(self, path: Optional[str]) -> None:
        self._path = path

    @property
    def path(self) -> Optional[str]:
        return self._path

    def _serialize(self) -> str:
        raise NotImplementedError

    def has_changes(self) -> bool:
        if self._path is None:
            raise EditorError("Cannot compare a document that was not read from a file")
        return read_text_if_exists(self._path) != self._serialize()

    def commit(self) -> bool:
        """Write the document back if it changed

        :return: True if the file was written
        """
        path = self._path
        if path is None:
            raise EditorError("Cannot commit a document that was not read from a file")
        new_text = self._serialize()
        if read_text_if_exists(path) == new_text:
            return False
        with open(path, "w", encoding="utf-8") as fd:
            fd.write(new_text)
        return True
