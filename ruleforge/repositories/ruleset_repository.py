"""Repositories for ruleset documents."""

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Protocol, Union, runtime_checkable

from pydantic import ValidationError

from ruleforge.errors import RulesetLoadError
from ruleforge.models.ruleset import RulesetDocument, RulesetInfo

logger = logging.getLogger(__name__)

_valid_id_re = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.\-]*$")


@runtime_checkable
class RulesetRepository(Protocol):
    """Loads ruleset documents by id and lists what is available."""

    def load(self, ruleset_id: str) -> RulesetDocument: ...

    def list_available(self) -> List[RulesetInfo]: ...


class FileRulesetRepository:
    """
    Reads rulesets stored as `<directory>/<id>.json`.

    Several directories may be given; the first one holding a file for an id
    wins.
    """

    def __init__(self, *directories: Union[str, Path]):
        self.directories = [Path(d) for d in directories] or [Path("Rulesets")]

    def _path_for(self, ruleset_id: str) -> Path:
        if not ruleset_id or not _valid_id_re.match(ruleset_id) or ".." in ruleset_id:
            raise RulesetLoadError(ruleset_id, "invalid ruleset id")
        for directory in self.directories:
            candidate = directory / f"{ruleset_id}.json"
            if candidate.is_file():
                return candidate
        raise RulesetLoadError(ruleset_id, "ruleset file not found")

    def load(self, ruleset_id: str) -> RulesetDocument:
        path = self._path_for(ruleset_id)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise RulesetLoadError(ruleset_id, f"could not read {path}: {e}") from e

        try:
            document = RulesetDocument.model_validate_json(text)
        except ValidationError as e:
            raise RulesetLoadError(ruleset_id, f"invalid ruleset document: {e}") from e

        logger.info(f"Loaded ruleset '{ruleset_id}' from {path}")
        return document

    def list_available(self) -> List[RulesetInfo]:
        """
        Metadata of every readable ruleset file, sorted by name.
        Files that cannot be parsed are skipped with a warning.
        """
        found: Dict[str, RulesetInfo] = {}
        for directory in self.directories:
            if not directory.is_dir():
                logger.debug(f"Rulesets directory not found: {directory}")
                continue

            for file_path in sorted(directory.glob("*.json")):
                try:
                    data = json.loads(file_path.read_text(encoding="utf-8"))
                    metadata = data.get("metadata") if isinstance(data, dict) else None
                    if not isinstance(metadata, dict) or not metadata.get("id"):
                        logger.warning(f"Ruleset file {file_path.name} has no metadata id; skipped")
                        continue
                    info = RulesetInfo.model_validate(metadata)
                except (OSError, ValueError, ValidationError) as e:
                    logger.warning(f"Failed to read ruleset {file_path.name}: {e}")
                    continue

                found.setdefault(info.id, info)

        return sorted(found.values(), key=lambda info: (info.name.lower(), info.id))


class InMemoryRulesetRepository:
    """Holds already-parsed documents. Useful for embedding hosts and tests."""

    def __init__(self, documents: Union[List[RulesetDocument], None] = None):
        self._documents: Dict[str, RulesetDocument] = {}
        for document in documents or []:
            self.add(document)

    def add(self, document: Union[RulesetDocument, dict]) -> RulesetDocument:
        if not isinstance(document, RulesetDocument):
            document = RulesetDocument.model_validate(document)
        self._documents[document.id] = document
        return document

    def load(self, ruleset_id: str) -> RulesetDocument:
        try:
            return self._documents[ruleset_id]
        except KeyError:
            raise RulesetLoadError(ruleset_id, "ruleset not registered") from None

    def list_available(self) -> List[RulesetInfo]:
        infos = [RulesetInfo.from_metadata(d.metadata) for d in self._documents.values()]
        return sorted(infos, key=lambda info: (info.name.lower(), info.id))
