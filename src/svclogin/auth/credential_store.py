"""Persistent per-host credential store.

Credentials live in one human-editable TOML file, by default
``~/.config/svclogin/credentials.toml``::

    # Managed by svclogin; other content is left alone.
    [credentials."app.terraform.io"]
    token = "abc.atlasv1.xyz"

    [credentials."tfe.example.com:8443"]
    token = "..."
    refresh_token = "..."

Edits go through a :mod:`tomlkit` document, so comments, ordering,
whitespace and unrelated tables are written back exactly as they were read.
:func:`upsert` updates an existing host table in place, keeping any extra
keys and comments inside it; an entry spelled differently from the
comparison form (``APP.terraform.io:443``) is replaced by one under the
canonical key.  :func:`remove` drops the host's table together with the
comments written inside it.

Every edited document is parsed again with :mod:`tomllib` and compared with
the original.  An edit that would touch anything besides the host's entry,
or that does not yield the expected entry, raises
:class:`~svclogin.exceptions.CorruptStore` and nothing is written.

Files are written atomically via :func:`tempfile.NamedTemporaryFile` and
``os.replace`` with ``0o600`` permissions, so a crash mid-write never
corrupts the previous document.  Concurrent logins to *different* hosts are
safe as long as each reloads the file right before merging
(:meth:`CredentialStore.merge` does); concurrent logins to the *same* host
race and the last writer wins.
"""

from __future__ import annotations

import logging
import os
import tempfile
import tomllib
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Iterator, Optional

import tomlkit
from tomlkit.exceptions import TOMLKitError
from tomlkit.items import InlineTable

from svclogin.exceptions import CorruptStore, PersistFailed
from svclogin.hostname import same_host
from svclogin.models import Credential

logger = logging.getLogger(__name__)

SECTION = "credentials"


@dataclass(frozen=True)
class CredentialDocument:
    """An immutable credentials document: its exact text plus the parsed data.

    Build one with :meth:`parse` or :meth:`empty`; derive new documents with
    :func:`upsert` and :func:`remove`.
    """

    text: str
    data: dict[str, Any] = field(compare=False)
    source: Optional[Path] = field(default=None, compare=False)

    @classmethod
    def empty(cls, source: Optional[Path] = None) -> CredentialDocument:
        return cls(text="", data={}, source=source)

    @classmethod
    def parse(cls, text: str, source: Optional[Path] = None) -> CredentialDocument:
        """Parse *text* as a credentials document.

        Raises:
            CorruptStore: If *text* is not valid TOML or ``credentials`` is
                not a table of tables.
        """
        where = str(source) if source else "credentials document"
        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise CorruptStore(f"The credentials file {where} is not valid TOML: {exc}") from exc
        section = data.get(SECTION, {})
        if not isinstance(section, dict):
            raise CorruptStore(f"The credentials file {where} has a '{SECTION}' value that is not a table")
        for key, value in section.items():
            if not isinstance(value, dict):
                raise CorruptStore(
                    f"The credentials file {where} has a non-table entry for host {key!r}"
                )
        return cls(text=text, data=data, source=source)

    def _section(self) -> dict[str, dict[str, Any]]:
        return self.data.get(SECTION, {})

    def entries(self) -> dict[str, Credential]:
        """Return the stored credentials keyed by hostname as written in the file.

        Entries without a string ``token`` are skipped with a warning.
        """
        result: dict[str, Credential] = {}
        for key, value in self._section().items():
            token = value.get("token")
            if not isinstance(token, str) or not token:
                logger.warning("ignoring credentials entry for %s: no token", key)
                continue
            refresh = value.get("refresh_token")
            result[key] = Credential(
                hostname=key,
                token=token,
                refresh_token=refresh if isinstance(refresh, str) and refresh else None,
            )
        return result

    def get(self, key: str) -> Optional[Credential]:
        """Return the credential stored for the host *key*, if any."""
        for stored, credential in self.entries().items():
            if same_host(stored, key):
                return credential
        return None

    def matching_keys(self, key: str) -> list[str]:
        """Keys of every entry naming the same host as *key*, in file order."""
        return [stored for stored in self._section() if same_host(stored, key)]


# --- Editing ---


def _where(doc: CredentialDocument) -> str:
    return str(doc.source) if doc.source else "credentials document"


def _cannot_update(doc: CredentialDocument, key: str) -> CorruptStore:
    return CorruptStore(
        f"The entry for {key} in {_where(doc)} cannot be updated automatically; "
        f"edit the file by hand"
    )


def _editable(doc: CredentialDocument, key: str) -> tomlkit.TOMLDocument:
    text = doc.text
    if text and not text.endswith("\n"):
        # new tables must start on a line of their own
        text += "\r\n" if "\r\n" in text else "\n"
    try:
        return tomlkit.parse(text)
    except TOMLKitError as exc:
        raise _cannot_update(doc, key) from exc


def _fill(entry: Any, credential: Credential) -> None:
    entry["token"] = credential.token
    if credential.refresh_token:
        entry["refresh_token"] = credential.refresh_token
    elif "refresh_token" in entry:
        del entry["refresh_token"]


def _new_entry(credential: Credential, inline: bool) -> Any:
    entry = tomlkit.inline_table() if inline else tomlkit.table()
    _fill(entry, credential)
    return entry


def _verify(
    original: CredentialDocument,
    edited: CredentialDocument,
    key: str,
    expected: Optional[Credential],
) -> None:
    """Check that only host *key* changed between the two documents."""

    def others(data: dict[str, Any]) -> tuple[dict[str, Any], dict[str, Any]]:
        rest = {k: v for k, v in data.items() if k != SECTION}
        section = {
            k: v for k, v in data.get(SECTION, {}).items() if not same_host(k, key)
        }
        return rest, section

    if others(original.data) != others(edited.data):
        raise _cannot_update(original, key)
    found = [v for k, v in edited.data.get(SECTION, {}).items() if same_host(k, key)]
    if expected is None:
        ok = not found
    else:
        ok = (
            len(found) == 1
            and found[0].get("token") == expected.token
            and found[0].get("refresh_token") == expected.refresh_token
        )
    if not ok:
        raise _cannot_update(original, key)


def _finish(
    original: CredentialDocument,
    model: tomlkit.TOMLDocument,
    key: str,
    expected: Optional[Credential],
) -> CredentialDocument:
    try:
        edited = CredentialDocument.parse(tomlkit.dumps(model), original.source)
    except CorruptStore as exc:
        raise _cannot_update(original, key) from exc
    _verify(original, edited, key, expected)
    return edited


def upsert(doc: CredentialDocument, key: str, credential: Credential) -> CredentialDocument:
    """Return a copy of *doc* where host *key* maps to *credential*.

    An entry stored under exactly *key* is updated in place; entries for the
    same host under another spelling are dropped and, if none was exact, a
    new ``[credentials."<key>"]`` table is added.  Upserting the same pair
    twice yields the same document as upserting once.

    Raises:
        CorruptStore: If the edit cannot be applied and verified.
    """
    model = _editable(doc, key)
    matches = doc.matching_keys(key)
    try:
        section = model.get(SECTION)
        if section is None:
            section = tomlkit.table(is_super_table=True)
            section[key] = _new_entry(credential, inline=False)
            model[SECTION] = section
        else:
            if key in matches:
                _fill(section[key], credential)
            for stale in matches:
                if stale != key:
                    del section[stale]
            if key not in matches:
                section[key] = _new_entry(credential, inline=isinstance(section, InlineTable))
    except TOMLKitError as exc:
        raise _cannot_update(doc, key) from exc
    return _finish(doc, model, key, credential)


def remove(doc: CredentialDocument, key: str) -> tuple[CredentialDocument, bool]:
    """Return a copy of *doc* without host *key*, and whether it was present.

    Raises:
        CorruptStore: If the entry exists but cannot be removed cleanly.
    """
    matches = doc.matching_keys(key)
    if not matches:
        return doc, False
    model = _editable(doc, key)
    try:
        section = model[SECTION]
        for stale in matches:
            del section[stale]
    except TOMLKitError as exc:
        raise _cannot_update(doc, key) from exc
    return _finish(doc, model, key, None), True


# --- Writing ---


@contextmanager
def _atomic_replace(path: Path) -> Iterator[IO[str]]:
    """Yield a temp file next to *path*; rename it over *path* on success.

    Living in the same directory as *path* makes the final
    ``os.replace`` a same-filesystem rename.  On any failure
    (including ``KeyboardInterrupt``) the temp file is removed and *path*
    is left untouched.
    """
    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
            newline="",
        )
        tmp_path = fd.name
        # owner-only before any secret is written
        os.chmod(tmp_path, 0o600)
        yield fd
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


class CredentialStore:
    """Read and atomically write one credentials file.

    Args:
        path: The credentials file.  It need not exist yet.

    Example::

        store = CredentialStore(Path("~/.config/svclogin/credentials.toml").expanduser())
        store.merge(Credential(hostname="app.terraform.io", token="tok123"))
        assert store.load().get("app.terraform.io").token == "tok123"
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """The filesystem path of the credentials file."""
        return self._path

    def load(self) -> CredentialDocument:
        """Load the document from disk.

        Returns:
            The parsed document; an empty one if the file does not exist.

        Raises:
            CorruptStore: If the file exists but cannot be read or parsed.
        """
        try:
            raw = self._path.read_bytes()
        except FileNotFoundError:
            logger.debug("credentials file %s does not exist yet", self._path)
            return CredentialDocument.empty(self._path)
        except OSError as exc:
            raise CorruptStore(f"Cannot read credentials file {self._path}: {exc}") from exc
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CorruptStore(f"The credentials file {self._path} is not UTF-8 text: {exc}") from exc
        return CredentialDocument.parse(text, self._path)

    def save(self, doc: CredentialDocument) -> None:
        """Write *doc* atomically with ``0o600`` permissions.

        Raises:
            PersistFailed: On any I/O, permission, or directory-creation
                error.  The previous file is left untouched.
        """
        try:
            self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistFailed(
                f"Cannot create directory {self._path.parent} for the credentials file: {exc}"
            ) from exc
        try:
            with _atomic_replace(self._path) as handle:
                handle.write(doc.text)
        except OSError as exc:
            raise PersistFailed(f"Cannot write credentials file {self._path}: {exc}") from exc
        logger.debug("wrote credentials file %s", self._path)

    def merge(self, credential: Credential) -> CredentialDocument:
        """Reload the file, upsert *credential* under its hostname, and save.

        Raises:
            CorruptStore: If the existing file is unusable.
            PersistFailed: If writing fails.
        """
        doc = upsert(self.load(), credential.hostname, credential)
        self.save(doc)
        return doc

    def forget(self, key: str) -> bool:
        """Remove host *key* from the file; return whether it was stored.

        The file is not rewritten when the host was absent.
        """
        doc, removed = remove(self.load(), key)
        if removed:
            self.save(doc)
        return removed
