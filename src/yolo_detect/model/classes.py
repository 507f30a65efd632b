"""Class registry: index-addressed class names for the detector's outputs."""

import logging
from importlib import resources
from pathlib import Path
from typing import Iterable, Iterator

from yolo_detect.config import get_contract_value
from yolo_detect.errors import ClassRegistryMismatchError, RegistryLoadError

logger = logging.getLogger(__name__)


class ClassRegistry:
    """Immutable, ordered sequence of class names.

    Example:
        >>> registry = ClassRegistry(["person", "bicycle"])
        >>> registry.name_of(1)
        'bicycle'
    """

    def __init__(self, names: Iterable[str], source: str | None = None) -> None:
        self._names = tuple(names)
        self.source = source

        if not self._names:
            raise RegistryLoadError(
                f"Class list is empty{f': {source}' if source else ''}"
            )

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __getitem__(self, class_id: int) -> str:
        return self.name_of(class_id)

    def __repr__(self) -> str:
        return f"ClassRegistry({len(self._names)} classes, source={self.source!r})"

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def name_of(self, class_id: int) -> str:
        """Name for a class index.

        Raises:
            ClassRegistryMismatchError: If class_id is negative or >= len(self)
        """
        if not 0 <= class_id < len(self._names):
            raise ClassRegistryMismatchError(class_id, len(self._names))
        return self._names[class_id]

    @classmethod
    def from_lines(cls, lines: Iterable[str], source: str | None = None) -> "ClassRegistry":
        """Parse one name per line, skipping blank lines and '#' comments."""
        names = []
        for raw in lines:
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            names.append(line)
        return cls(names, source=source)

    @classmethod
    def from_file(cls, path: str | Path) -> "ClassRegistry":
        """Load a class list file.

        Raises:
            RegistryLoadError: If the file is missing, unreadable or empty
        """
        path = Path(path)
        if not path.is_file():
            raise RegistryLoadError(f"Class list not found: {path}")

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise RegistryLoadError(f"Failed to read class list {path}: {e}") from e

        registry = cls.from_lines(text.splitlines(), source=str(path))
        logger.info(f"Loaded {len(registry)} class names from {path}")
        return registry

    @classmethod
    def default(cls) -> "ClassRegistry":
        """Bundled default class list (COCO, 80 classes)."""
        filename = get_contract_value("models", "default_classes")
        resource = resources.files("yolo_detect") / "data" / filename

        try:
            text = resource.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise RegistryLoadError(f"Bundled class list unavailable: {filename}") from e

        return cls.from_lines(text.splitlines(), source=f"bundled:{filename}")


def default_classes_path() -> Path:
    """Filesystem path of the bundled class list."""
    filename = get_contract_value("models", "default_classes")
    return Path(__file__).parent.parent / "data" / filename
