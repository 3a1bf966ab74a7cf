from typing import Dict, Generic, Iterator, List, Protocol, TypeVar


class HasName(Protocol):
    name: str


T = TypeVar("T", bound=HasName)


class Registry(Generic[T]):
    """
    Tasks and composites reachable by name, plus command aliases such as
    `env:restart` pointing at `restart-<service>`.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, T] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, entry: T) -> None:
        """Add an entry under its own name. Raises ValueError on any name clash."""
        self._ensure_free(entry.name)
        self._entries[entry.name] = entry

    def register_all(self, entries: List[T]) -> None:
        for entry in entries:
            self.register(entry)

    def register_alias(self, alias: str, target: str) -> None:
        if target not in self._entries:
            raise ValueError(f"Alias target '{target}' does not exist.")
        self._ensure_free(alias)
        self._aliases[alias] = target

    def get(self, name: str) -> T:
        """Look up by name or alias. Raises KeyError if neither is known."""
        canonical = self._aliases.get(name, name)
        try:
            return self._entries[canonical]
        except KeyError:
            raise KeyError(f"'{name}' not found in registry.") from None

    def names(self) -> List[str]:
        return sorted(self._entries)

    def _ensure_free(self, name: str) -> None:
        if name in self._aliases:
            raise ValueError(f"'{name}' conflicts with an existing alias.")
        if name in self._entries:
            raise ValueError(f"'{name}' is already registered.")

    def __contains__(self, name: str) -> bool:
        return name in self._entries or name in self._aliases

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(self._entries.values())
