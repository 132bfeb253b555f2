from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"^[A-Z0-9][A-Z0-9-]{0,63}$")


class CertificateStorage:
    """Rendered certificate PDFs on the local filesystem, one per number."""

    def __init__(self, base_path: Path):
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)

    def path_for(self, certificate_number: str) -> Path:
        if not _NUMBER_RE.match(certificate_number):
            raise ValueError(f"Invalid certificate number: {certificate_number!r}")
        return self.base_path / f"{certificate_number}.pdf"

    def exists(self, certificate_number: str) -> bool:
        return self.path_for(certificate_number).exists()

    def delete(self, certificate_number: str) -> bool:
        p = self.path_for(certificate_number)
        if p.exists():
            p.unlink()
            logger.info("Removed certificate file %s", p.name)
            return True
        return False
