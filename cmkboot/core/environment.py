"""
Explicit executable search path.

Provisioned tools are made visible to child processes through a SearchPath
value that is threaded from the provisioner into the build orchestrator and
turned into a child environment at spawn time. The interpreter's own
os.environ is never modified.
"""

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class SearchPath:
    """
    Ordered, immutable list of directories searched for executables.

    Example:
        >>> path = SearchPath.from_environ({"PATH": "/usr/bin"})
        >>> path = path.prepend("tools/cmake/bin")
        >>> path.entries[0].name
        'bin'
    """

    entries: Tuple[Path, ...] = ()

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "SearchPath":
        """Build a search path from the PATH variable of an environment mapping."""
        if environ is None:
            environ = os.environ
        raw = environ.get("PATH", "")
        return cls(tuple(Path(entry) for entry in raw.split(os.pathsep) if entry))

    def __contains__(self, directory: Union[str, Path]) -> bool:
        return Path(directory) in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def prepend(self, directory: Union[str, Path]) -> "SearchPath":
        """
        Return a search path with directory placed before all other entries.

        Adding a directory that is already present returns the same value
        unchanged; no other deduplication is done.
        """
        directory = Path(directory).absolute()
        if directory in self:
            return self
        return SearchPath((directory,) + self.entries)

    def as_string(self) -> str:
        return os.pathsep.join(str(entry) for entry in self.entries)

    def which(self, name: str) -> Optional[Path]:
        """Locate an executable on this search path."""
        found = shutil.which(name, path=self.as_string())
        return Path(found) if found else None

    def as_env(self, base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """
        Build a child-process environment using this search path.

        Args:
            base: Environment to copy (defaults to os.environ)

        Returns:
            New dictionary with PATH replaced
        """
        env = dict(os.environ if base is None else base)
        env["PATH"] = self.as_string()
        return env


__all__ = ["SearchPath"]
